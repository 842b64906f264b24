"""Word package access, paragraph extraction and reinsertion."""

from __future__ import annotations

import io
import logging
import pathlib
import re
import zipfile
from typing import Dict, List, Mapping, Optional, Union

from docx.oxml.ns import qn
from lxml import etree

from .errors import DocumentLoadError, UnsupportedFileTypeError
from .segmenter import is_heading_style
from .structures import ExtractableItem

logger = logging.getLogger(__name__)

MAIN_DOCUMENT_PART = "word/document.xml"
STYLES_PART = "word/styles.xml"

W_P = qn("w:p")
W_T = qn("w:t")
W_PPR = qn("w:pPr")
W_PSTYLE = qn("w:pStyle")
W_VAL = qn("w:val")
W_FLD_SIMPLE = qn("w:fldSimple")
W_INSTR = qn("w:instr")
XML_SPACE = "{http://www.w3.org/XML/1998/namespace}space"

# Table-of-contents and page-reference fields regenerate their text in Word.
FIELD_MARKER_PATTERN = re.compile(r"\bTOC\s+\\|PAGEREF")

# Characters outside the XML 1.0 Char production.
XML_INVALID_CHARS = re.compile(
    "[^\u0009\u000a\u000d\u0020-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]"
)

_XML_PARSER = etree.XMLParser(resolve_entities=False, huge_tree=True)


class DocxArchive:
    """Zip container holding the parts of a Word package."""

    def __init__(self, data: bytes) -> None:
        try:
            self._zip = zipfile.ZipFile(io.BytesIO(data))
        except zipfile.BadZipFile as exc:
            raise DocumentLoadError(
                "The input is not a valid .docx package (zip archive expected)."
            ) from exc
        self._replacements: Dict[str, bytes] = {}

    @classmethod
    def open(cls, path: Union[str, pathlib.Path]) -> "DocxArchive":
        try:
            data = pathlib.Path(path).read_bytes()
        except OSError as exc:
            raise DocumentLoadError(f"Could not read {path}: {exc}") from exc
        return cls(data)

    def names(self) -> List[str]:
        return self._zip.namelist()

    def has(self, name: str) -> bool:
        return name in self._replacements or name in self._zip.namelist()

    def read_bytes(self, name: str) -> bytes:
        if name in self._replacements:
            return self._replacements[name]
        try:
            return self._zip.read(name)
        except KeyError as exc:
            raise DocumentLoadError(
                f"Could not find {name} in the package."
            ) from exc

    def read_text(self, name: str) -> str:
        return self.read_bytes(name).decode("utf-8")

    def write(self, name: str, data: Union[bytes, str]) -> None:
        """Stage new content for an existing entry."""

        if name not in self._zip.namelist():
            raise KeyError(name)
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._replacements[name] = data

    def to_bytes(self) -> bytes:
        """Rebuild the archive, copying untouched entries as they were."""

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as target:
            for info in self._zip.infolist():
                payload = self._replacements.get(info.filename)
                if payload is None:
                    payload = self._zip.read(info.filename)
                target.writestr(info, payload)
        return buffer.getvalue()


def _owning_paragraph(node: etree._Element) -> Optional[etree._Element]:
    parent = node.getparent()
    while parent is not None and parent.tag != W_P:
        parent = parent.getparent()
    return parent


def paragraph_text_nodes(paragraph: etree._Element) -> List[etree._Element]:
    """Return the `w:t` nodes that belong to this paragraph.

    Text boxes embed whole paragraphs inside a run; their text nodes are
    attributed to the nested paragraph, not to the one hosting the drawing.
    """

    return [
        node
        for node in paragraph.iter(W_T)
        if _owning_paragraph(node) is paragraph
    ]


def safe_text(paragraph: etree._Element) -> str:
    """Visible run text of a paragraph, excluding field instructions."""

    return "".join(node.text or "" for node in paragraph_text_nodes(paragraph))


def contains_field_marker(paragraph: etree._Element) -> bool:
    """Check the full paragraph content for TOC or PAGEREF fields."""

    parts = list(paragraph.itertext())
    parts.extend(
        field.get(W_INSTR, "") for field in paragraph.iter(W_FLD_SIMPLE)
    )
    return bool(FIELD_MARKER_PATTERN.search("".join(parts)))


def xml_safe(text: str) -> str:
    """Drop control characters that cannot be stored in an XML text node."""

    return XML_INVALID_CHARS.sub("", text)


def paragraph_style_id(paragraph: etree._Element) -> Optional[str]:
    properties = paragraph.find(W_PPR)
    if properties is None:
        return None
    style = properties.find(W_PSTYLE)
    if style is None:
        return None
    return style.get(W_VAL)


class DocxDocumentHandler:
    """Extracts and reinserts paragraph text for Word documents."""

    def __init__(self, archive: DocxArchive) -> None:
        self.archive = archive
        raw = archive.read_bytes(MAIN_DOCUMENT_PART)
        try:
            self.root = etree.fromstring(raw, _XML_PARSER)
        except etree.XMLSyntaxError as exc:
            raise DocumentLoadError(
                f"{MAIN_DOCUMENT_PART} is not well-formed XML: {exc}"
            ) from exc
        self.paragraphs: List[etree._Element] = list(self.root.iter(W_P))
        self.style_names = self._load_style_names()
        self.items: List[ExtractableItem] = []

    @classmethod
    def from_path(cls, path: Union[str, pathlib.Path]) -> "DocxDocumentHandler":
        return cls(DocxArchive.open(path))

    @classmethod
    def from_bytes(cls, data: bytes) -> "DocxDocumentHandler":
        return cls(DocxArchive(data))

    # --- Extraction -------------------------------------------------------

    def extract_items(self) -> List[ExtractableItem]:
        """Collect translatable paragraphs in document order."""

        items: List[ExtractableItem] = []
        skipped_fields = 0
        for index, paragraph in enumerate(self.paragraphs):
            if contains_field_marker(paragraph):
                skipped_fields += 1
                continue
            text = safe_text(paragraph)
            if not text.strip():
                continue
            items.append(ExtractableItem(id=index, text=text))
        logger.info(
            "Extracted %d of %d paragraphs (%d field paragraphs skipped).",
            len(items),
            len(self.paragraphs),
            skipped_fields,
        )
        self.items = items
        return items

    def is_heading(self, paragraph_id: int) -> bool:
        style_id = paragraph_style_id(self.paragraphs[paragraph_id])
        if not style_id:
            return False
        if is_heading_style(style_id):
            return True
        display_name = self.style_names.get(style_id)
        return bool(display_name) and is_heading_style(display_name)

    # --- Reinsertion ------------------------------------------------------

    def apply_translations(self, translations: Mapping[int, str]) -> int:
        """Write translated text into paragraphs in place.

        The first text run receives the whole translation and later runs are
        emptied, so inline formatting boundaries inside a paragraph collapse.
        Returns the number of paragraphs changed.
        """

        applied = 0
        for paragraph_id, translated in translations.items():
            if not translated:
                continue
            nodes = paragraph_text_nodes(self.paragraphs[paragraph_id])
            if not nodes:
                continue
            cleaned = xml_safe(translated)
            if cleaned != translated:
                logger.warning(
                    "Removed XML-incompatible characters from paragraph %d.",
                    paragraph_id,
                )
            first, rest = nodes[0], nodes[1:]
            first.text = cleaned
            first.set(XML_SPACE, "preserve")
            for node in rest:
                node.text = ""
            applied += 1
        return applied

    def serialize_main_part(self) -> bytes:
        tree = self.root.getroottree()
        return etree.tostring(
            tree,
            xml_declaration=True,
            encoding="UTF-8",
            standalone=tree.docinfo.standalone,
        )

    def to_bytes(self) -> bytes:
        self.archive.write(MAIN_DOCUMENT_PART, self.serialize_main_part())
        return self.archive.to_bytes()

    def save(self, destination: pathlib.Path) -> None:
        destination.write_bytes(self.to_bytes())

    # --- Internal helpers -------------------------------------------------

    def _load_style_names(self) -> Dict[str, str]:
        if not self.archive.has(STYLES_PART):
            return {}
        try:
            styles = etree.fromstring(
                self.archive.read_bytes(STYLES_PART), _XML_PARSER
            )
        except etree.XMLSyntaxError:
            logger.warning("Ignoring unreadable %s.", STYLES_PART)
            return {}
        names: Dict[str, str] = {}
        for style in styles.iter(qn("w:style")):
            style_id = style.get(qn("w:styleId"))
            name = style.find(qn("w:name"))
            if style_id and name is not None and name.get(W_VAL):
                names[style_id] = name.get(W_VAL)
        return names


def detect_handler(path: pathlib.Path) -> DocxDocumentHandler:
    """Open the provided file with the matching handler."""

    if path.suffix.lower() == ".docx":
        return DocxDocumentHandler.from_path(path)
    raise UnsupportedFileTypeError(
        "This file type isn’t supported. Please use a .docx file."
    )
