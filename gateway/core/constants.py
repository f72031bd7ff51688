"""
Constants
Fixed project file names and engine command-line flags.
"""
PROJECT_MARKER_FILE = "project.godot"
EXPORT_CONFIG_FILE = "export_presets.cfg"

HEADLESS_FLAG = "--headless"
RENDERING_DRIVER_FLAG = "--rendering-driver"
EXPORT_RELEASE_FLAG = "--export-release"
QUIT_FLAG = "--quit"

CLONE_DEPTH = 1
