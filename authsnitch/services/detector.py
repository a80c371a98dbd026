"""
Authentication change detector.

Builds the detection prompt from the configured keyword table and template,
sends it to an OpenAI (or Azure OpenAI) chat model, and hands the free-text
reply to DetectionResultParser.
"""

from typing import List, Optional, Sequence

from openai import AsyncAzureOpenAI, AsyncOpenAI

from authsnitch.analyzers.detection_parser import DetectionResultParser, empty_result
from authsnitch.config import AnalysisConfig
from authsnitch.exceptions import ConfigurationError, DetectorError
from authsnitch.models.detection import DetectionResult
from authsnitch.models.file_change import FileChange
from authsnitch.utils.logging import get_logger
from authsnitch.utils.metrics import AnalysisMetrics, track_api_call
from authsnitch.utils.resilience import CircuitBreaker, create_llm_circuit_breaker


logger = get_logger(__name__)

AZURE_API_VERSION = "2024-02-15-preview"


def build_llm_client(settings):
    """
    Create the async chat client described by the settings.

    Azure OpenAI is used when both an endpoint and a key are configured,
    otherwise the public OpenAI API.
    """
    if settings.azure_openai_endpoint and settings.azure_openai_api_key:
        logger.info("Initialized Azure OpenAI client")
        return AsyncAzureOpenAI(
            api_key=settings.azure_openai_api_key,
            api_version=AZURE_API_VERSION,
            azure_endpoint=settings.azure_openai_endpoint,
        )

    if not settings.openai_api_key:
        raise ConfigurationError(
            "OPENAI_API_KEY or AZURE_OPENAI_ENDPOINT/AZURE_OPENAI_API_KEY is required"
        )

    logger.info("Initialized OpenAI client")
    return AsyncOpenAI(api_key=settings.openai_api_key)


def parse_custom_keywords(custom_keywords: Optional[str]) -> List[str]:
    """Split a comma-separated keyword list, dropping blanks."""
    if not custom_keywords:
        return []
    return [kw.strip() for kw in custom_keywords.split(",") if kw.strip()]


def reconcile_detection_flag(result: DetectionResult) -> DetectionResult:
    """Mark a result as detected when the model reported findings but no flag."""
    if result.findings and not result.auth_changes_detected:
        logger.warning(
            f"Detector reported {len(result.findings)} findings without the auth flag; setting it"
        )
        return result.model_copy(update={"auth_changes_detected": True})
    return result


class AuthChangeDetector:
    """Asks the detector model whether a change touches authentication."""

    def __init__(
        self,
        client,
        model: str,
        config: Optional[AnalysisConfig] = None,
        parser: Optional[DetectionResultParser] = None,
        custom_keywords: Optional[str] = None,
        custom_prompt: Optional[str] = None,
        max_tokens: int = 4096,
        circuit_breaker: Optional[CircuitBreaker] = None,
        metrics: Optional[AnalysisMetrics] = None,
    ):
        """
        Initialize the detector.

        Args:
            client: AsyncOpenAI or AsyncAzureOpenAI instance
            model: Model (or Azure deployment) name
            config: Analysis configuration with keywords and prompt template
            parser: Result parser (carries the parse fallback policy)
            custom_keywords: Comma-separated extra keywords
            custom_prompt: Prompt template overriding the configured one
            max_tokens: Completion token limit
            circuit_breaker: Optional CircuitBreaker instance
            metrics: Optional run metrics
        """
        self.client = client
        self.model = model
        self.config = config or AnalysisConfig()
        self.parser = parser or DetectionResultParser()
        self.custom_keywords = custom_keywords
        self.custom_prompt = custom_prompt
        self.max_tokens = max_tokens
        self.circuit_breaker = circuit_breaker or create_llm_circuit_breaker()
        self.metrics = metrics

    def all_keywords(self) -> List[str]:
        """Configured keywords of every category plus custom ones, de-duplicated."""
        keywords: List[str] = []
        for category_keywords in self.config.keywords.values():
            keywords.extend(category_keywords)
        keywords.extend(parse_custom_keywords(self.custom_keywords))
        return list(dict.fromkeys(keywords))

    def build_prompt(self, diff_content: str, file_changes: Sequence[FileChange] = ()) -> str:
        """
        Render the full prompt sent to the model.

        Args:
            diff_content: Output of DiffParser.extract_changes_for_analysis
            file_changes: Parsed changes; auth-sensitive ones are listed

        Returns:
            Prompt text
        """
        template = self.custom_prompt or self.config.detection_prompt
        prompt = template.replace("{keywords}", ", ".join(self.all_keywords()))

        file_context = ""
        auth_files = [change.filename for change in file_changes if change.auth_sensitive]
        if auth_files:
            file_context = "\n\nAuth-sensitive files detected:\n"
            file_context += "\n".join(f"- {name}" for name in auth_files)

        return (
            f"{prompt}\n\n"
            f"{file_context}\n\n"
            f"=== CODE DIFF ===\n"
            f"{diff_content}\n"
            f"=== END DIFF ===\n"
        )

    async def analyze(
        self,
        diff_content: Optional[str],
        file_changes: Sequence[FileChange] = (),
    ) -> DetectionResult:
        """
        Analyze diff content for authentication-related changes.

        Args:
            diff_content: Rendered diff content
            file_changes: Parsed changes for context

        Returns:
            DetectionResult; the empty result when there is nothing to analyze

        Raises:
            DetectorError: If the model call fails or the circuit is open
        """
        if not diff_content or not diff_content.strip():
            return empty_result()

        prompt = self.build_prompt(diff_content, file_changes)
        raw_text = await self._complete(prompt)
        return reconcile_detection_flag(self.parser.parse(raw_text))

    async def _complete(self, prompt: str) -> str:
        async def _call_llm() -> str:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self.max_tokens,
                temperature=0,
            )
            return response.choices[0].message.content or ""

        try:
            async with track_api_call(
                self.metrics, "openai", logger, endpoint="chat.completions", method="POST"
            ):
                return await self.circuit_breaker.call(_call_llm)
        except Exception as e:
            raise DetectorError(f"Detector call failed: {e}") from e
