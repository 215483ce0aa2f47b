"""Scripting clients for the external editor and library applications."""

from .editor import EditorClient, ScriptedEditor
from .library import LibraryClient, ScriptedLibrary
from .osascript import OsascriptRunner

__all__ = ["EditorClient", "LibraryClient", "OsascriptRunner", "ScriptedEditor", "ScriptedLibrary"]
