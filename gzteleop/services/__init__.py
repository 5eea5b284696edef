# Service layer for the gzteleop web viewer
# - input_mapper:    keyboard keys -> velocity command (no I/O)
# - session_manager: scene/messaging connection lifecycle, follow state, publishing
# - scene_client:    websocket client for the gz scene server
# - ros_client:      rosbridge publisher built on roslibpy
