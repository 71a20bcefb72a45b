"""
Book, comic and newspaper helpers.

Two jobs:
    - read embedded metadata (EPUB OPF via zipfile + ElementTree, PDF via pdfinfo) so
      the release can be matched on Open Library
    - pull a few representative page images out of the file for the description

Supported page sources:
    pdf   pages 1..3 rendered by pdftoppm at 100 dpi
    epub  the cover image declared in the OPF manifest
    cbz   the first 3 images by name
    cbr   the first 3 images by name, after unrar into the work directory

All output lands in a caller-provided work directory, normally a
tempfile.TemporaryDirectory owned by the artifact builder.
"""

import logging
import posixpath
import re
import xml.etree.ElementTree as ET
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from seedtools.schemas.config import PathSettings
from seedtools.services.exceptions import ExternalToolError, ScreenshotError
from seedtools.utils.process import run_tool

logger = logging.getLogger(__name__)


PAGE_COUNT = 3
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".gif")
PAGED_EXTENSIONS = (".pdf", ".epub", ".mobi", ".azw3", ".cbz", ".cbr", ".cb7")

_OPF_NS = {
    "opf": "http://www.idpf.org/2007/opf",
    "dc": "http://purl.org/dc/elements/1.1/",
}
_CONTAINER_NS = {"c": "urn:oasis:names:tc:opendocument:xmlns:container"}


@dataclass(frozen=True)
class BookMetadata:
    title: str = ""
    author: str = ""
    year: str = ""

    @property
    def searchable(self) -> bool:
        return bool(self.title and self.author)


def _clean(value: Optional[str]) -> str:
    return re.sub(r"\s+", " ", (value or "")).strip()


def _first_text(root: ET.Element, paths: List[str]) -> str:
    for path in paths:
        node = root.find(path, _OPF_NS)
        if node is not None and node.text:
            text = _clean(node.text)
            if text:
                return text
    return ""


def _read_opf(zf: zipfile.ZipFile) -> Optional[tuple]:
    """(opf path, parsed OPF root) or None."""
    container_root = ET.fromstring(zf.read("META-INF/container.xml"))
    rootfile = container_root.find(".//c:rootfile", _CONTAINER_NS)
    if rootfile is None:
        return None
    opf_path = (rootfile.attrib.get("full-path") or "").strip()
    if not opf_path:
        return None
    return opf_path, ET.fromstring(zf.read(opf_path))


def extract_epub_metadata(epub_path: Path) -> BookMetadata:
    """Title, first creator and publication year from the OPF package document."""
    try:
        with zipfile.ZipFile(epub_path, "r") as zf:
            opf = _read_opf(zf)
    except (zipfile.BadZipFile, KeyError, ET.ParseError, OSError) as e:
        logger.warning(f"Could not read EPUB metadata from {epub_path.name}: {e}")
        return BookMetadata()

    if opf is None:
        return BookMetadata()

    _, root = opf
    title = _first_text(root, [".//dc:title", ".//opf:metadata/dc:title"])
    author = _first_text(root, [".//dc:creator", ".//opf:metadata/dc:creator", ".//dc:contributor"])
    date_text = _first_text(root, [".//dc:date", ".//opf:metadata/dc:date"])
    year_match = re.search(r"(\d{4})", date_text)
    return BookMetadata(title=title, author=author, year=year_match.group(1) if year_match else "")


def extract_pdf_metadata(pdf_path: Path, pdfinfo: str = "pdfinfo") -> BookMetadata:
    """Title, Author and CreationDate year from pdfinfo's key: value output."""
    try:
        result = run_tool([pdfinfo, str(pdf_path)], ExternalToolError, "pdfinfo failed")
    except ExternalToolError as e:
        logger.warning(f"Could not read PDF metadata from {pdf_path.name}: {e}")
        return BookMetadata()

    fields: Dict[str, str] = {}
    for line in result.stdout.splitlines():
        key, sep, value = line.partition(":")
        if sep:
            fields[key.strip()] = _clean(value)

    year_match = re.search(r"(19|20)\d{2}", fields.get("CreationDate", ""))
    return BookMetadata(
        title=fields.get("Title", ""),
        author=fields.get("Author", ""),
        year=year_match.group(0) if year_match else "",
    )


def representative_file(path: Path) -> Optional[Path]:
    """The file a paged release is described by: the path itself or the first paged file inside it."""
    if path.is_file():
        return path
    for candidate in sorted(p for p in path.rglob("*") if p.is_file()):
        if candidate.suffix.lower() in PAGED_EXTENSIONS:
            return candidate
    return None


def read_embedded_metadata(path: Path, paths: PathSettings) -> BookMetadata:
    """Embedded metadata for an EPUB or PDF release; empty for anything else."""
    target = representative_file(path)
    if target is None:
        return BookMetadata()
    suffix = target.suffix.lower()
    if suffix == ".epub":
        return extract_epub_metadata(target)
    if suffix == ".pdf":
        return extract_pdf_metadata(target, paths.pdfinfo)
    return BookMetadata()


class PageExtractor:
    """Writes representative page images for paged releases into a work directory."""

    def __init__(self, paths: PathSettings, count: int = PAGE_COUNT):
        self.pdftoppm = paths.pdftoppm
        self.unrar = paths.unrar
        self.count = count

    def extract(self, path: Path, workdir: Path) -> List[Path]:
        """
        Page images for the release, possibly empty.

        Raises:
            ScreenshotError: When an external tool fails
        """
        target = representative_file(path)
        if target is None:
            return []

        suffix = target.suffix.lower()
        if suffix == ".pdf":
            return self._pdf_pages(target, workdir)
        if suffix == ".epub":
            cover = self._epub_cover(target, workdir)
            return [cover] if cover else []
        if suffix == ".cbz":
            return self._zip_images(target, workdir)
        if suffix == ".cbr":
            return self._rar_images(target, workdir)

        logger.info(f"No page extraction available for {target.name}")
        return []

    def _pdf_pages(self, pdf_path: Path, workdir: Path) -> List[Path]:
        pages = []
        for page in range(1, self.count + 1):
            prefix = workdir / f"page_{page}"
            try:
                run_tool(
                    [self.pdftoppm, "-jpeg", "-r", "100", "-f", str(page), "-l", str(page), str(pdf_path), str(prefix)],
                    ScreenshotError,
                    f"pdftoppm page {page} failed",
                )
            except ScreenshotError as e:
                # Short documents run out of pages.
                if page == 1:
                    raise
                logger.debug(f"Stopping page extraction at page {page}: {e}")
                break
            pages.extend(sorted(workdir.glob(f"page_{page}*.jpg")))
        return pages

    @staticmethod
    def _epub_cover(epub_path: Path, workdir: Path) -> Optional[Path]:
        try:
            with zipfile.ZipFile(epub_path, "r") as zf:
                member = _epub_cover_member(zf)
                if member is None:
                    return None
                destination = workdir / f"cover{posixpath.splitext(member)[1].lower() or '.jpg'}"
                destination.write_bytes(zf.read(member))
                return destination
        except (zipfile.BadZipFile, KeyError, ET.ParseError, OSError) as e:
            raise ScreenshotError(f"Could not extract EPUB cover from {epub_path.name}: {e}", tool="zipfile") from e

    def _zip_images(self, archive: Path, workdir: Path) -> List[Path]:
        try:
            with zipfile.ZipFile(archive, "r") as zf:
                names = sorted(n for n in zf.namelist() if n.lower().endswith(IMAGE_EXTENSIONS))
                pages = []
                for i, name in enumerate(names[:self.count], 1):
                    destination = workdir / f"page_{i}{posixpath.splitext(name)[1].lower()}"
                    destination.write_bytes(zf.read(name))
                    pages.append(destination)
                return pages
        except (zipfile.BadZipFile, OSError) as e:
            raise ScreenshotError(f"Could not read comic archive {archive.name}: {e}", tool="zipfile") from e

    def _rar_images(self, archive: Path, workdir: Path) -> List[Path]:
        run_tool(
            [self.unrar, "e", "-o+", str(archive), f"{workdir}/"],
            ScreenshotError,
            f"unrar of {archive.name} failed",
        )
        images = sorted(p for p in workdir.iterdir() if p.suffix.lower() in IMAGE_EXTENSIONS)
        return images[:self.count]


def _epub_cover_member(zf: zipfile.ZipFile) -> Optional[str]:
    """Archive member holding the cover: manifest cover-image, <meta name="cover">, then any *cover* image."""
    try:
        opf = _read_opf(zf)
    except (KeyError, ET.ParseError) as e:
        logger.debug(f"EPUB has no readable OPF, scanning images instead: {e}")
        opf = None

    if opf is not None:
        opf_path, root = opf
        base = posixpath.dirname(opf_path)
        items = root.findall(".//opf:manifest/opf:item", _OPF_NS)

        cover_id = None
        meta = root.find(".//opf:metadata/opf:meta[@name='cover']", _OPF_NS)
        if meta is not None:
            cover_id = meta.attrib.get("content")

        for item in items:
            properties = item.attrib.get("properties", "")
            if "cover-image" in properties.split() or (cover_id and item.attrib.get("id") == cover_id):
                href = item.attrib.get("href", "")
                if href:
                    return posixpath.normpath(posixpath.join(base, href))

    images = sorted(n for n in zf.namelist() if n.lower().endswith(IMAGE_EXTENSIONS))
    covers = [n for n in images if "cover" in n.lower()]
    if covers:
        return covers[0]
    return images[0] if images else None
