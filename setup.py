import sys

from setuptools import setup

APP = ["app/ScreenTime.py"]
DATA_FILES = []
OPTIONS = {
    "argv_emulation": True,
    "plist": {
        "LSUIElement": True,
    },
    "packages": ["rumps", "mac_screen_time"],
}

# only pull in py2app when building the menu bar .app
app_kwargs = {}
if "py2app" in sys.argv:
    app_kwargs = dict(
        app=APP,
        data_files=DATA_FILES,
        options={"py2app": OPTIONS},
        setup_requires=["py2app"],
    )

setup(
    name="mac-screen-time",
    version="0.1.0",
    description="Screen on time and battery drain since the last charge from the macOS pmset log",
    package_dir={"": "src"},
    packages=["mac_screen_time"],
    python_requires=">=3.10",
    install_requires=[
        "typer",
        'rumps; sys_platform == "darwin"',
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "mac-screen-time=mac_screen_time.__main__:app",
        ],
    },
    **app_kwargs,
)
