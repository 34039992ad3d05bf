"""File types, update policies and export-pattern placeholders.

These are the per-file-set vocabularies shared by the config schema, the push
reconciler (type and conflict policy sent with create/update) and the deploy
step (export patterns turned into match expressions).
"""

from __future__ import annotations

import fnmatch
import re
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple


class FileType(str, Enum):
    """File types understood by the remote service, with their extensions.

    Declaration order matters for extension-based detection: the first type
    claiming an extension wins (``.xml`` detects as ``android``).
    """

    auto = "auto"
    android = "android"
    macosx = "macosx"
    resx = "resx"
    properties = "properties"
    properties_play = "properties_play"
    gettext = "gettext"
    yaml = "yaml"
    php = "php"
    json = "json"
    xml = "xml"
    ini = "ini"
    rc = "rc"
    resw = "resw"
    resjson = "resjson"
    qtts = "qtts"
    joomla = "joomla"
    chrome = "chrome"
    dtd = "dtd"
    dklang = "dklang"
    flex = "flex"
    nsh = "nsh"
    wxl = "wxl"
    xliff = "xliff"
    html = "html"
    haml = "haml"
    txt = "txt"
    csv = "csv"
    md = "md"
    js = "js"
    mediawiki = "mediawiki"
    docx = "docx"
    sbv = "sbv"
    vtt = "vtt"
    srt = "srt"

    @property
    def extensions(self) -> Tuple[str, ...]:
        return _EXTENSIONS.get(self, ())

    def has_extension(self, extension: Optional[str]) -> bool:
        if not extension:
            return False
        return extension.lstrip(".").lower() in self.extensions

    @property
    def is_property_style(self) -> bool:
        return self in (FileType.properties, FileType.properties_play)

    @classmethod
    def detect(cls, file_name: str) -> "FileType":
        """Guess the type from a file name's extension, ``auto`` when unknown."""
        extension = get_extension(file_name)
        if extension:
            for file_type in cls:
                if file_type.has_extension(extension):
                    return file_type
        return cls.auto


_EXTENSIONS: Dict[FileType, Tuple[str, ...]] = {
    FileType.android: ("xml",),
    FileType.macosx: ("strings",),
    FileType.resx: ("resx", "resw"),
    FileType.properties: ("properties",),
    FileType.gettext: ("po", "pot"),
    FileType.yaml: ("yaml", "yml"),
    FileType.php: ("php",),
    FileType.json: ("json",),
    FileType.xml: ("xml",),
    FileType.ini: ("ini",),
    FileType.rc: ("rc",),
    FileType.resw: ("resw",),
    FileType.resjson: ("resjson",),
    FileType.qtts: ("ts",),
    FileType.joomla: ("ini",),
    FileType.chrome: ("json",),
    FileType.dtd: ("dtd",),
    FileType.dklang: ("dklang",),
    FileType.flex: ("properties",),
    FileType.nsh: ("nsh",),
    FileType.wxl: ("wxl",),
    FileType.xliff: ("xliff", "xlf"),
    FileType.html: ("html", "htm", "xhtml", "xhtm"),
    FileType.haml: ("haml",),
    FileType.txt: ("txt",),
    FileType.csv: ("csv",),
    FileType.md: ("md", "text", "markdown"),
    FileType.js: ("js",),
    FileType.mediawiki: ("wiki", "wikitext", "mediawiki"),
    FileType.docx: ("docx", "dotx", "odt", "ott", "pptx", "potx", "ods", "ots"),
    FileType.sbv: ("sbv",),
    FileType.vtt: ("vtt",),
    FileType.srt: ("srt",),
}


class UpdateOption(str, Enum):
    """Conflict policy applied by the service when a source file is updated."""

    delete_translations = "delete_translations"
    update_as_unapproved = "update_as_unapproved"
    update_without_changes = "update_without_changes"


def get_extension(file_name: str) -> Optional[str]:
    name = file_name.replace("\\", "/").rsplit("/", 1)[-1]
    if "." not in name.strip("."):
        return None
    return name.rsplit(".", 1)[-1].lower() or None


class PathPlaceholder(Enum):
    """Placeholders allowed in export patterns, with the regex each one matches."""

    LANGUAGE = ("%language%", r"([\w,. ()]+)")
    TWO_LETTER = ("%two_letters_code%", r"([a-zA-Z]{2})")
    THREE_LETTER = ("%three_letters_code%", r"([a-zA-Z]{3})")
    LOCALE_HYPHEN = ("%locale%", r"([a-z]{2,3}(?:-[A-Z]{2})?)")
    LOCALE_UNDERSCORE = ("%locale_with_underscore%", r"([a-z]{2,3}(?:_[A-Z]{2})?)")
    ANDROID_CODE = ("%android_code%", r"(.*?)")
    MACOS_CODE = ("%osx_code%", r"(.*?)")
    MACOS_LOCALE = ("%osx_locale%", r"(.*?)")
    ORIGINAL_FILENAME = ("%original_file_name%", r"([^<>:;,?\"*|/\\\r\n\t]+)")
    FILENAME = ("%file_name%", r"([^<>:;,?\"*|/\\\r\n\t]+)")
    FILE_EXTENSION = ("%file_extension%", r"([^<>:;,?\"*|/\\\r\n\t.]+)")
    ORIGINAL_PATH = ("%original_path%", r"([^<>:;,?\"*|\r\n\t]+)")

    def __init__(self, identifier: str, pattern: str) -> None:
        self.identifier = identifier
        self.pattern = pattern

    @classmethod
    def of(cls, identifier: str) -> Optional["PathPlaceholder"]:
        for placeholder in cls:
            if placeholder.identifier == identifier:
                return placeholder
        return None


PLACEHOLDER_PATTERN = re.compile(r"%[^%]+%")

CROWDIN_CODE = "%crowdin_code%"
CROWDIN_CODE_UNDERSCORE = "%crowdin_code_with_underscore%"


def compile_export_pattern(prefix: str, export_pattern: str) -> Tuple["re.Pattern[str]", List[PathPlaceholder]]:
    """Turn ``prefix`` + an export pattern into a full-match regex.

    Returns the compiled expression and the placeholders in group order.

    Raises:
        ValueError: If the pattern uses an unknown placeholder.
    """
    parts: List[str] = []
    if prefix:
        parts.append(re.escape(prefix.rstrip("/") + "/"))
    placeholders: List[PathPlaceholder] = []
    remaining = export_pattern.lstrip("/")
    while remaining:
        match = PLACEHOLDER_PATTERN.search(remaining)
        if not match:
            parts.append(re.escape(remaining))
            break
        if match.start() > 0:
            parts.append(re.escape(remaining[: match.start()]))
        placeholder = PathPlaceholder.of(match.group())
        if placeholder is None:
            raise ValueError(f'Unknown placeholder "{match.group()}"')
        parts.append(placeholder.pattern)
        placeholders.append(placeholder)
        remaining = remaining[match.end():]
    return re.compile("".join(parts)), placeholders


def matches_filter(relative_path: str, file_name: str, patterns: Sequence[str]) -> bool:
    """True if either the relative path or the bare file name matches a glob.

    Globs support ``*`` and ``?``; a backslash stands for ``/``.
    """
    for pattern in patterns:
        if not pattern or not pattern.strip():
            continue
        normalized = pattern.replace("\\", "/")
        if fnmatch.fnmatchcase(relative_path, normalized) or fnmatch.fnmatchcase(file_name, normalized):
            return True
    return False
