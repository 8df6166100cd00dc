"""py2app entry point for the screen time menu bar app."""
from mac_screen_time import menubar

menubar.main()
