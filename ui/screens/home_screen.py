"""Start screen listing the day templates a workout can be started from."""

from __future__ import annotations

from kivy.metrics import dp
from kivymd.app import MDApp
from kivymd.uix.boxlayout import MDBoxLayout
from kivymd.uix.label import MDLabel
from kivymd.uix.list import MDList, OneLineListItem
from kivymd.uix.screen import MDScreen
from kivymd.uix.scrollview import MDScrollView


class HomeScreen(MDScreen):
    """Primary screen with one entry per day template."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        root = MDBoxLayout(orientation="vertical", padding=dp(8))
        self._empty = MDLabel(text="", halign="center", size_hint_y=None, height=dp(48))
        scroll = MDScrollView()
        self._days = MDList()
        scroll.add_widget(self._days)
        root.add_widget(MDLabel(text="Start workout", font_style="H5", size_hint_y=None, height=dp(56)))
        root.add_widget(self._empty)
        root.add_widget(scroll)
        self.add_widget(root)

    def on_pre_enter(self, *args):
        self.populate()
        return super().on_pre_enter(*args)

    def populate(self):
        app = MDApp.get_running_app()
        self._days.clear_widgets()
        days = app.store.all_day_templates() if app and app.store else []
        self._empty.text = "" if days else "No day templates yet"
        for day in days:
            self._days.add_widget(
                OneLineListItem(
                    text=day.name,
                    on_release=lambda _item, day_id=day.id: app.start_workout(day_id),
                )
            )
