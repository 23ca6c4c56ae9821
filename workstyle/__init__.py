"""Workstyle - workspaces with style.

Renames the workspaces of Hyprland, Sway and i3 to show a glyph for every
application running on them. The daemon runs as a single asyncio task that
follows the window manager's event stream and keeps a live model of each
workspace's windows.
"""
