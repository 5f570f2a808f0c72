"""
Media Remote - Phone-driven media and input control for your desktop

A small WebSocket server for the local network. A phone or browser sends
JSON commands; the host plays/pauses media, changes volume and brightness,
types text, presses keys and moves the mouse.

Features:
- Any number of concurrent clients, one response per command
- Broadcast messages from the host to every client
- Mouse and keyboard input via xdotool
- HTTP control endpoints for status and broadcast

Usage:
    media-remote start      # Start the server
    media-remote stop       # Stop the server
    media-remote status     # Check server status
    media-remote broadcast  # Push a message to every client
    media-remote ip         # Show local IP address
"""

__version__ = "1.0.0"
__author__ = "Media Remote"
