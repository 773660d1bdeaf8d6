from .settings_lists import split_setting

__all__ = ["split_setting"]
