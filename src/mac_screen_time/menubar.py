"""Menubar application for macOS screen time since the last charge"""
import rumps as _rumps
import concurrent.futures as _futures
import logging as _logging

from . import core as _core
from .config import ScreenTimeSettings

logger = _logging.getLogger(__name__)

_APP_NAME = "Screen Time"


def now_str() -> str:
    return _core.ts_to_str(_core.now_local())


class ScreenTimeApp(_rumps.App):
    def __init__(self, settings: ScreenTimeSettings | None = None):
        super(ScreenTimeApp, self).__init__(name=_APP_NAME)
        self.__settings = settings or ScreenTimeSettings()

        placeholder = _core.SummaryResult.placeholder()
        self.title = _core.app_title(placeholder)
        self.__summary_menu_items = [
            _rumps.MenuItem(line) for line in _core.summary_lines(placeholder, _core.now_local())
        ]
        self.__status_menu_item = _rumps.MenuItem("Loading...")
        for menu_item in self.__summary_menu_items:
            self.menu.add(menu_item)
        self.menu.add(_rumps.separator)
        self.menu.add(self.__status_menu_item)
        self.menu.add(_rumps.MenuItem("Refresh", callback=self.__on_refresh_clicked))

        # setup threadpool to get the update
        self.__pool = _futures.ThreadPoolExecutor(max_workers=1)
        self.__run_update()

        # set up UI update
        self.__update_ui_timer = _rumps.Timer(
            self.__update_ui, self.__settings.ui_poll_interval.total_seconds()
        )
        self.__update_ui_timer.start()

        # set up refresh
        self.__refresh_timer = _rumps.Timer(
            self.__refresh, self.__settings.refresh_interval.total_seconds()
        )
        self.__refresh_timer.start()

    def __run_update(self):
        """Spawns a task to fetch the summary unconditionally."""
        self.__pending = self.__pool.submit(
            _core.screen_time_summary, self.__settings.tail_lines
        )

    def __update_ui(self, _: _rumps.Timer):
        if self.__pending is None or not self.__pending.done():
            return
        try:
            result = self.__pending.result()
            self.title = _core.app_title(result)
            lines = _core.summary_lines(result, _core.now_local())
            for line, menu_item in zip(lines, self.__summary_menu_items):
                menu_item.title = line
            self.__status_menu_item.title = f"Updated: {now_str()}"
        except Exception as e:
            logger.exception("Failed to refresh screen time")
            self.__status_menu_item.title = f"Error: {now_str()} - {str(e)}"
        # reset for refresh
        self.__pending = None

    def __refresh(self, _: _rumps.Timer):
        if self.__pending is not None:
            return
        self.__run_update()

    def __on_refresh_clicked(self, _: _rumps.MenuItem):
        self.__status_menu_item.title = "Loading..."
        self.__refresh(None)


def main(settings: ScreenTimeSettings | None = None):
    ScreenTimeApp(settings).run()


if __name__ == "__main__":
    main()
