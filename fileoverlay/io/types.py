# fileoverlay/io/types.py
from typing import Callable, TypeAlias

# A transform maps the full text content of a file to its new content
Transform: TypeAlias = Callable[[str], str]

# Callback bound to a change subscription; receives no payload
ChangeCallback: TypeAlias = Callable[[], None]
