"""
Exhibit Processing Pipeline

Ingestion:   Keep the caller's retained exhibits, skip uploads already processed.
Extraction:  One model call per new PDF, all issued concurrently. Each returns a
             heading, summary, expense amount and any client identity it saw.
             A failed file becomes an error exhibit; siblings are unaffected.
Aggregation: Fold per-exhibit client identity into one value per field.
Analysis:    One case-level model call over every successful exhibit summary.
             Failure here fails the whole request.
Consolidate: Exhibits, analysis, client identity and totals in one response.
"""

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Tuple

from ..config import Config
from ..errors import GlobalAnalysisError, ModelCallError, ResponseParseError
from ..models import (
    DEFAULT_SUMMARY,
    ClientInfo,
    ConsolidatedResponse,
    Exhibit,
    GlobalAnalysis,
    ProcessingInfo,
    coerce_amount,
    coerce_str,
)
from ..utils.file_parser import UploadedFile, file_hash, parse_pdf_bytes
from ..utils.model_client import ModelClient
from ..utils.response_parser import parse_json_object
from .client_info import aggregate_client_info
from .ingestion import plan_ingestion

logger = logging.getLogger(__name__)

# "Exhibit 3: " as the model writes it at the start of a heading
EXHIBIT_PREFIX = re.compile(r'^\s*Exhibit\s+\d+\s*:\s*', re.IGNORECASE)


def consolidate(
    exhibits: List[Exhibit],
    analysis: GlobalAnalysis,
    client_info: ClientInfo,
    existing_count: int,
    skipped_files: Optional[List[str]] = None,
    reprocessed: bool = False,
) -> ConsolidatedResponse:
    """Merge one pass into the response. No external calls, no failure modes."""
    total_expenses = sum(e.expenses for e in exhibits)
    info = ProcessingInfo(
        total_exhibits=len(exhibits),
        existing_exhibits=existing_count,
        new_exhibits=len(exhibits) - existing_count,
        error_exhibits=sum(1 for e in exhibits if e.is_error),
        skipped_files=list(skipped_files or []),
        reprocessed=reprocessed,
    )
    return ConsolidatedResponse(
        exhibits=exhibits,
        total_expenses=total_expenses,
        global_analysis=analysis,
        client_info=client_info,
        processing_info=info,
    )


class ExhibitPipeline:
    """Turns uploaded exhibits into a consolidated demand-letter response."""

    def __init__(self, client: ModelClient, config: Config):
        self.client = client
        self.config = config

    # ------------------------------------------------------------------
    # Public entry point
    # ------------------------------------------------------------------

    def process(
        self,
        uploads: List[UploadedFile],
        existing: List[Exhibit],
        keep_files: Optional[List[str]] = None,
        reprocess_all: bool = False,
    ) -> ConsolidatedResponse:
        """
        Full pass: ingest -> extract -> aggregate -> analyze -> consolidate.

        Args:
            uploads: Files uploaded with this request.
            existing: Exhibits the caller already holds from earlier passes.
            keep_files: Filenames to retain from `existing`. None keeps all.
            reprocess_all: Skip extraction and re-run the case analysis only.

        Returns:
            ConsolidatedResponse

        Raises:
            InputError: nothing to process.
            GlobalAnalysisError: the case-level analysis failed.
        """
        plan = plan_ingestion(uploads, existing, keep_files, reprocess_all)
        logger.info(
            f"Processing {len(plan.new_files)} new and {len(plan.retained)} existing exhibit(s)"
            + (" (reprocess)" if plan.reprocess_all else "")
        )

        new_exhibits = self.extract_all(plan.new_files, first_number=len(plan.retained) + 1)
        exhibits = plan.retained + new_exhibits

        aggregated = aggregate_client_info(e.client_info for e in exhibits)
        analysis, analysis_client_info = self.analyze_case(exhibits, aggregated)
        client_info = aggregated.overridden_by(analysis_client_info)

        response = consolidate(
            exhibits,
            analysis,
            client_info,
            existing_count=len(plan.retained),
            skipped_files=plan.skipped_files,
            reprocessed=plan.reprocess_all,
        )
        logger.info(
            f"Processed {response.processing_info.total_exhibits} exhibit(s), "
            f"{response.processing_info.error_exhibits} error(s), "
            f"total expenses ${response.total_expenses:,.2f}"
        )
        return response

    # ------------------------------------------------------------------
    # Per-exhibit extraction
    # ------------------------------------------------------------------

    @staticmethod
    def build_extraction_prompt(exhibit_number: int, document_text: Optional[str] = None) -> str:
        source = (
            f"\n\nDOCUMENT TEXT:\n{document_text}"
            if document_text
            else "\n\nThe document is attached."
        )
        return f"""You are an expert legal document analyst working on a personal injury demand letter. Review this exhibit and summarize it for the letter.

Return ONLY a JSON object in this exact shape:
{{
  "heading": "Exhibit {exhibit_number}: <short descriptive title, e.g. Emergency Room Bill>",
  "summary": "<professional narrative summary of the exhibit: parties, dates, findings, treatment, charges>",
  "expenses": <total monetary amount billed or claimed in this exhibit as a number, 0 if none>,
  "clientInfo": {{
    "clientName": "<injured client's full name or null>",
    "policyNumber": "<insurance policy number or null>",
    "claimNumber": "<insurance claim number or null>",
    "dateOfLoss": "<date of the incident as MM/DD/YYYY or null>"
  }}
}}

RULES:
1. Use only information in the document. Use null for anything not present.
2. "expenses" must be a plain number with no currency symbol or commas.
3. No preamble, no markdown fences, no explanation.{source}"""

    def extract_all(self, files: List[UploadedFile], first_number: int = 1) -> List[Exhibit]:
        """Extract every file concurrently, then settle each result individually."""
        if not files:
            return []

        with ThreadPoolExecutor(max_workers=len(files)) as executor:
            futures = [
                executor.submit(self.extract_exhibit, upload, first_number + i)
                for i, upload in enumerate(files)
            ]

        exhibits = []
        for i, (upload, future) in enumerate(zip(files, futures)):
            try:
                exhibits.append(future.result())
            except Exception as e:
                logger.exception(f"Unexpected failure extracting {upload.file_name}")
                exhibits.append(self._error_exhibit(upload, first_number + i, e))
        return exhibits

    def extract_exhibit(self, upload: UploadedFile, exhibit_number: int) -> Exhibit:
        """One model call for one file. Model and parse failures become an error exhibit."""
        try:
            raw = self._request_extraction(upload, exhibit_number)
            data = parse_json_object(raw)
        except (ModelCallError, ResponseParseError) as e:
            logger.error(f"Extraction failed for {upload.file_name}: {e.message}")
            return self._error_exhibit(upload, exhibit_number, e)

        client_info = data.get('clientInfo')
        return Exhibit(
            file_name=upload.file_name,
            heading=coerce_str(data.get('heading'), f"Exhibit {exhibit_number}: {Path(upload.file_name).stem}"),
            summary=coerce_str(data.get('summary'), DEFAULT_SUMMARY),
            expenses=coerce_amount(data.get('expenses')),
            client_info=ClientInfo.from_dict(client_info) if isinstance(client_info, dict) else None,
            file_hash=file_hash(upload.file_name, upload.size, upload.last_modified),
        )

    def _request_extraction(self, upload: UploadedFile, exhibit_number: int) -> str:
        if self.config.exhibit_transport == 'text':
            text = parse_pdf_bytes(upload.data)
            if text:
                return self.client.generate(
                    self.build_extraction_prompt(exhibit_number, text),
                    max_tokens=self.config.extraction_max_tokens,
                    description=f"extraction of {upload.file_name}",
                )
            logger.info(f"No text layer in {upload.file_name}, attaching the PDF instead")

        return self.client.generate(
            self.build_extraction_prompt(exhibit_number),
            attachment=upload.data,
            max_tokens=self.config.extraction_max_tokens,
            description=f"extraction of {upload.file_name}",
        )

    @staticmethod
    def _error_exhibit(upload: UploadedFile, exhibit_number: int, error: Exception) -> Exhibit:
        message = getattr(error, 'message', None) or str(error)
        return Exhibit(
            file_name=upload.file_name,
            heading=f"Exhibit {exhibit_number}: {upload.file_name} (Processing Error)",
            summary=f"Error processing this document: {message}",
            expenses=0.0,
            client_info=None,
            file_hash=file_hash(upload.file_name, upload.size, upload.last_modified),
            is_error=True,
        )

    # ------------------------------------------------------------------
    # Global case analysis
    # ------------------------------------------------------------------

    @staticmethod
    def combined_exhibit_text(exhibits: List[Exhibit]) -> str:
        """Successful exhibits, labelled by their position in the full list."""
        return "\n\n".join(
            f"Exhibit {i}: {EXHIBIT_PREFIX.sub('', e.heading)}\n{e.summary}"
            for i, e in enumerate(exhibits, 1)
            if not e.is_error
        )

    @staticmethod
    def build_analysis_prompt(combined_text: str, known: ClientInfo) -> str:
        def hint(value):
            return value if value else 'not found'

        return f"""You are an expert personal injury attorney preparing a settlement demand letter. Below are summaries of every exhibit in the case file.

ALREADY KNOWN CLIENT INFORMATION (from the exhibits; correct it only if the summaries clearly say otherwise):
- Client name: {hint(known.client_name)}
- Policy number: {hint(known.policy_number)}
- Claim number: {hint(known.claim_number)}
- Date of loss: {hint(known.date_of_loss)}

EXHIBIT SUMMARIES:
{combined_text}

Return ONLY a JSON object in this exact shape:
{{
  "natureOfClaim": "<paragraph describing the nature of the claim>",
  "facts": "<narrative of the facts of the incident>",
  "liability": "<paragraph explaining why the other party is liable>",
  "injuries": ["<each injury sustained>"],
  "damages": {{
    "people": [
      {{
        "name": "<injured person's name>",
        "specialDamages": {{"total": <number>, "items": [{{"description": "<provider / service>", "amount": <number>}}]}},
        "futureMedicalExpenses": {{"total": <number>, "items": [{{"description": "<anticipated treatment>", "amount": <number>}}]}},
        "generalDamages": {{"total": <number>, "items": ["<non-economic harm>"]}}
      }}
    ],
    "totalSettlementDemand": <number>
  }},
  "clientInfo": {{
    "clientName": "<string or null>",
    "policyNumber": "<string or null>",
    "claimNumber": "<string or null>",
    "dateOfLoss": "<string or null>"
  }}
}}

DAMAGES RULES:
1. Every monetary line item MUST be taken verbatim from the exhibit summaries. Never invent or estimate an amount.
2. Create one entry in "people" for each injured person named in the exhibits.
3. Each "total" is the sum of its items' amounts.
4. Omit futureMedicalExpenses for a person when no exhibit recommends future treatment.
5. All amounts are plain numbers with no currency symbols or commas.

No preamble, no markdown fences, no explanation."""

    def analyze_case(
        self, exhibits: List[Exhibit], known: ClientInfo
    ) -> Tuple[GlobalAnalysis, Optional[ClientInfo]]:
        """
        Case-level analysis over every successful exhibit.

        Returns the analysis and the client identity the model reported (or None).
        """
        combined = self.combined_exhibit_text(exhibits)
        if not combined:
            logger.warning("No successfully processed exhibits; skipping case analysis")
            return GlobalAnalysis(), None

        try:
            raw = self.client.generate(
                self.build_analysis_prompt(combined, known),
                max_tokens=self.config.analysis_max_tokens,
                description='case analysis',
            )
            data = parse_json_object(raw)
        except (ModelCallError, ResponseParseError) as e:
            raise GlobalAnalysisError('Failed to generate case analysis', details=e.message) from e

        embedded = data.pop('clientInfo', None)
        analysis_client_info = ClientInfo.from_dict(embedded) if isinstance(embedded, dict) else None

        past_medical_total = sum(e.expenses for e in exhibits)
        return GlobalAnalysis.from_dict(data, past_medical_total), analysis_client_info
