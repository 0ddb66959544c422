"""
Booklet Assembler

Merges, for one graduation:
  1. a cover (the supplied cover PDF, or a generated text cover if that fails)
  2. the sections named in the page order, in that order:
     - messages: section title + one page per thanks/memory content page
     - speeches: section title + one page per speech/text content page
     - students: every student's uploaded PDF
then uploads the result and records its URL on the graduation.

A student PDF that cannot be fetched or parsed is skipped and reported by
name; the job only fails when nobody had a PDF, or when the students section
was requested and none of the PDFs could be merged.
"""

import asyncio
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from io import BytesIO
from typing import Any, Dict, List, Optional, Sequence, Union

import httpx
from PyPDF2 import PdfReader, PdfWriter

from app.core.config import settings
from app.core.exceptions import (
    BookletTooLargeError,
    NoPdfsMergedError,
    NoStudentPdfsError,
    ValidationError,
)
from app.core.logging_config import graduation_log_context, logger
from app.modules.booklet.page_renderer import BookletTheme, ContentItem, PageRenderer
from app.modules.booklet.pdf_fetcher import FetchedPdf, PdfFetchError, PdfFetcher
from app.services.asset_store import AssetStore
from app.services.content_repository import ContentRepository
from app.services.document_store import DocumentStore
from app.services.graduation_repository import GraduationRepository
from app.services.student_repository import StudentRepository
from app.utils.timestamps import to_datetime, to_iso, utc_now

SECTION_STUDENTS = "students"
SECTION_MESSAGES = "messages"
SECTION_SPEECHES = "speeches"
KNOWN_SECTIONS = (SECTION_STUDENTS, SECTION_MESSAGES, SECTION_SPEECHES)

MESSAGE_TYPES = ("thanks", "memory")
SPEECH_TYPES = ("speech", "text")

SECTION_TITLES = {
    SECTION_MESSAGES: "Messages & Memories",
    SECTION_SPEECHES: "Speeches & Presentations",
}

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class StudentOutcome:
    name: str
    pdf: Optional[FetchedPdf] = None
    reason: Optional[str] = None


@dataclass
class BookletResult:
    graduation_id: str
    booklet_url: str
    page_count: int
    student_count: int
    total_students: int
    processed_students: int
    skipped_students: List[str] = field(default_factory=list)
    size_bytes: int = 0
    cover_source: str = "generated"
    sections: List[str] = field(default_factory=list)

    @property
    def size_mb(self) -> float:
        return round(self.size_bytes / 1024 / 1024, 2)

    def stats(self, generated_at: datetime) -> Dict[str, Any]:
        return {
            "totalPages": self.page_count,
            "processedStudents": self.processed_students,
            "totalStudents": self.student_count,
            "sizeMB": self.size_mb,
            "generatedAt": to_iso(generated_at),
        }

    def to_response(self) -> Dict[str, Any]:
        return {
            "success": True,
            "bookletUrl": self.booklet_url,
            "pageCount": self.page_count,
            "studentCount": self.student_count,
            "totalStudents": self.total_students,
            "processedStudents": self.processed_students,
            "skippedStudents": list(self.skipped_students),
            "sizeMB": f"{self.size_mb:.2f}",
            "message": (
                f"Successfully generated booklet with "
                f"{self.processed_students}/{self.student_count} student profiles"
            ),
        }


def validate_graduation_id(graduation_id: Any) -> str:
    if not graduation_id or not isinstance(graduation_id, str):
        raise ValidationError("graduationId must be a non-empty string", field="graduationId")
    if not re.match(settings.GRADUATION_ID_PATTERN, graduation_id):
        raise ValidationError("Invalid graduationId format", field="graduationId")
    return graduation_id


def resolve_page_order(requested: Optional[Sequence[str]], config: Dict[str, Any]) -> List[str]:
    """Request order wins over the graduation's saved order, then the default"""
    if requested:
        return list(requested)
    saved = config.get("pageOrder")
    if isinstance(saved, list) and saved:
        order = [s for s in saved if s in KNOWN_SECTIONS]
        unknown = [s for s in saved if s not in KNOWN_SECTIONS]
        if unknown:
            logger.warning(f"[Booklet] Ignoring unknown sections in saved page order: {unknown}")
        if order:
            return order
    return settings.default_page_order


def _sort_by_created(pages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(pages, key=lambda p: to_datetime(p.get("createdAt")) or _EPOCH)


class BookletAssembler:
    def __init__(
        self,
        store: DocumentStore,
        assets: AssetStore,
        http_client: httpx.AsyncClient,
        fetch_concurrency: int = settings.BOOKLET_FETCH_CONCURRENCY,
        max_output_bytes: int = settings.BOOKLET_MAX_OUTPUT_BYTES,
        sort_students_by_order: bool = settings.BOOKLET_SORT_STUDENTS_BY_ORDER,
        fetcher: Optional[PdfFetcher] = None,
    ):
        self.graduations = GraduationRepository(store)
        self.students = StudentRepository(store)
        self.content = ContentRepository(store)
        self.assets = assets
        self.fetcher = fetcher or PdfFetcher(http_client)
        self.fetch_concurrency = max(1, fetch_concurrency)
        self.max_output_bytes = max_output_bytes
        self.sort_students_by_order = sort_students_by_order

    async def generate(
        self,
        graduation_id: str,
        custom_cover_url: Optional[str] = None,
        page_order: Optional[Sequence[str]] = None,
    ) -> BookletResult:
        with graduation_log_context(str(graduation_id or "")):
            return await self._generate(graduation_id, custom_cover_url, page_order)

    async def _generate(
        self,
        graduation_id: str,
        custom_cover_url: Optional[str] = None,
        page_order: Optional[Sequence[str]] = None,
    ) -> BookletResult:
        started = time.perf_counter()
        validate_graduation_id(graduation_id)

        graduation = await self.graduations.require(graduation_id)
        config = graduation.get("config") or {}
        order = resolve_page_order(page_order, config)

        content_pages = _sort_by_created(await self.content.list(graduation_id))
        if self.sort_students_by_order:
            roster = await self.students.list_ordered(graduation_id)
        else:
            roster = await self.students.list(graduation_id)
        with_pdfs = [s for s in roster if s.get("profilePdfUrl")]

        logger.log_booklet_event(
            graduation_id,
            f"{len(roster)} students, {len(with_pdfs)} with PDFs, {len(content_pages)} content pages",
            page_order=order,
        )
        if not with_pdfs:
            raise NoStudentPdfsError(total_students=len(roster))

        renderer = PageRenderer(BookletTheme.from_config(config))
        writer = PdfWriter()

        cover_source = await self._add_cover(writer, renderer, graduation, custom_cover_url)

        outcomes: List[StudentOutcome] = []
        if SECTION_STUDENTS in order:
            outcomes = await self._fetch_students(with_pdfs)

        processed: List[str] = []
        skipped: List[str] = []
        for section in order:
            if section == SECTION_STUDENTS:
                for outcome in outcomes:
                    if outcome.pdf is not None and self._append_reader(writer, outcome.pdf.reader, outcome.name):
                        processed.append(outcome.name)
                    else:
                        skipped.append(outcome.name)
                logger.log_booklet_event(graduation_id, f"Merged {len(processed)}/{len(with_pdfs)} student PDFs")
            elif section in (SECTION_MESSAGES, SECTION_SPEECHES):
                self._add_content_section(writer, renderer, section, config, content_pages)

        if SECTION_STUDENTS in order and not processed:
            logger.error(f"[Booklet] No PDFs merged for {graduation_id}; attempted {len(with_pdfs)}")
            raise NoPdfsMergedError(expected=len(with_pdfs), skipped_students=skipped)

        buffer = BytesIO()
        writer.write(buffer)
        pdf_bytes = buffer.getvalue()
        page_count = len(writer.pages)
        if len(pdf_bytes) > self.max_output_bytes:
            raise BookletTooLargeError(len(pdf_bytes), self.max_output_bytes)

        key = f"{settings.BOOKLET_FOLDER}/graduation_booklet_{graduation_id}.pdf"
        booklet_url = await self.assets.upload(pdf_bytes, key, "application/pdf", versioned=True)

        result = BookletResult(
            graduation_id=graduation_id,
            booklet_url=booklet_url,
            page_count=page_count,
            student_count=len(with_pdfs),
            total_students=len(roster),
            processed_students=len(processed),
            skipped_students=skipped,
            size_bytes=len(pdf_bytes),
            cover_source=cover_source,
            sections=order,
        )

        try:
            await self.graduations.record_booklet(graduation_id, booklet_url, result.stats(utc_now()))
        except Exception as e:
            # The booklet exists; failing to record it is not fatal
            logger.log_error_with_context(e, context=f"record booklet for {graduation_id}")

        logger.log_performance(
            f"booklet generation for {graduation_id}",
            (time.perf_counter() - started) * 1000,
            threshold_ms=60000,
            page_count=page_count,
        )
        logger.log_booklet_event(
            graduation_id,
            f"Generated {page_count} pages ({result.size_mb:.2f}MB), skipped {len(skipped)}",
        )
        return result

    async def _add_cover(
        self,
        writer: PdfWriter,
        renderer: PageRenderer,
        graduation: Dict[str, Any],
        custom_cover_url: Optional[str],
    ) -> str:
        if custom_cover_url:
            try:
                cover = await self.fetcher.fetch(custom_cover_url)
                for page in cover.reader.pages:
                    writer.add_page(page)
                logger.info(f"[Booklet] Added {cover.page_count} page(s) from custom cover")
                return "custom"
            except PdfFetchError as e:
                logger.warning(f"[Booklet] Custom cover unusable ({e.reason}), using generated cover")
            except Exception as e:
                logger.warning(f"[Booklet] Custom cover failed ({type(e).__name__}: {e}), using generated cover")

        cover_pdf = renderer.render_cover(graduation.get("schoolName"), graduation.get("graduationYear"))
        self._append_bytes(writer, cover_pdf)
        return "generated"

    async def _fetch_students(self, students: List[Dict[str, Any]]) -> List[StudentOutcome]:
        """Fetch every student PDF with bounded concurrency; results keep roster order"""
        semaphore = asyncio.Semaphore(self.fetch_concurrency)

        async def fetch_one(student: Dict[str, Any]) -> StudentOutcome:
            name = student.get("name") or "Unnamed"
            async with semaphore:
                try:
                    pdf = await self.fetcher.fetch(student["profilePdfUrl"])
                except PdfFetchError as e:
                    logger.log_student_skipped(name, e.reason)
                    return StudentOutcome(name=name, reason=e.reason)
                except Exception as e:
                    logger.log_student_skipped(name, f"{type(e).__name__}: {e}")
                    return StudentOutcome(name=name, reason=str(e))
            logger.debug(f"[Booklet] Fetched PDF for {name} ({pdf.page_count} pages)")
            return StudentOutcome(name=name, pdf=pdf)

        return list(await asyncio.gather(*(fetch_one(s) for s in students)))

    def _add_content_section(
        self,
        writer: PdfWriter,
        renderer: PageRenderer,
        section: str,
        config: Dict[str, Any],
        content_pages: List[Dict[str, Any]],
    ) -> None:
        if section == SECTION_MESSAGES:
            if config.get("showMessages") is False:
                return
            types = MESSAGE_TYPES
        else:
            if config.get("showSpeeches") is False:
                return
            types = SPEECH_TYPES

        items = [
            ContentItem(title=p.get("title") or "", body=p.get("content") or "", author=p.get("author"))
            for p in content_pages if p.get("type") in types
        ]
        if not items:
            return
        self._append_bytes(writer, renderer.render_section(SECTION_TITLES[section], items))
        logger.info(f"[Booklet] Added {len(items)} {section} pages")

    def _append_bytes(self, writer: PdfWriter, data: Union[bytes, bytearray]) -> None:
        for page in PdfReader(BytesIO(data)).pages:
            writer.add_page(page)

    def _append_reader(self, writer: PdfWriter, reader: PdfReader, name: str) -> bool:
        """Copy all pages, or none if any page cannot be read"""
        try:
            pages = list(reader.pages)
        except Exception as e:
            logger.log_student_skipped(name, f"could not read pages ({type(e).__name__})")
            return False
        for page in pages:
            writer.add_page(page)
        return True
