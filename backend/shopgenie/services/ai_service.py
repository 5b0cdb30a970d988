# /shopgenie/services/ai_service.py

import json
import logging
from typing import Optional, Dict

from openai import AsyncOpenAI
from pydantic import ValidationError
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from shopgenie.config.settings import settings
from shopgenie.config.persona import CLASSIFIER_SYSTEM_PROMPT, CLASSIFIER_USER_TEMPLATE
from shopgenie.models.intent import IntentTag, ResolvedIntent
from shopgenie.services import rule_classifier
from shopgenie.utils.circuit_breaker import CircuitBreaker, CircuitOpenError
from shopgenie.utils.metrics import classifier_requests_counter


# This service turns free text into a ResolvedIntent. The language model is
# tried first when configured; the rule-based classifier answers otherwise.

logger = logging.getLogger(__name__)


class AIService:
    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        if api_key:
            self.openai_client = AsyncOpenAI(api_key=api_key)
        else:
            self.openai_client = None
        self.model = model or settings.openai_model
        self.min_confidence = settings.classifier_min_confidence
        self.openai_breaker = CircuitBreaker("openai")

    async def classify(self, message: str) -> ResolvedIntent:
        """
        Classifies a message. Falls back to the rule-based classifier when no
        model is configured, the call fails, the reply is not valid JSON, or
        the model's confidence is below the configured minimum.
        """
        if self.openai_client:
            try:
                payload = await self.openai_breaker.call(self._generate_openai_json_response, message)
                intent = self._parse_intent(payload)
                if intent is not None and intent.confidence >= self.min_confidence:
                    classifier_requests_counter.labels(source="llm", intent=intent.intent.value).inc()
                    return intent
                logger.info("Model classification missing or below confidence threshold; using rules.")
            except CircuitOpenError:
                logger.warning("OpenAI circuit is open; using rule-based classifier.")
            except Exception as e:
                logger.error(f"OpenAI classification failed: {e}")

        intent = rule_classifier.classify(message)
        classifier_requests_counter.labels(source="rules", intent=intent.intent.value).inc()
        return intent

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=1, min=1, max=4),
        retry=retry_if_exception_type(json.JSONDecodeError),
        reraise=True,
    )
    async def _generate_openai_json_response(self, message: str) -> Dict:
        response = await self.openai_client.chat.completions.create(
            model=self.model,
            response_format={"type": "json_object"},
            temperature=0,
            messages=[
                {"role": "system", "content": CLASSIFIER_SYSTEM_PROMPT},
                {"role": "user", "content": CLASSIFIER_USER_TEMPLATE.format(message=message)},
            ],
        )
        return json.loads(response.choices[0].message.content or "")

    def _parse_intent(self, payload: Optional[Dict]) -> Optional[ResolvedIntent]:
        if not isinstance(payload, dict):
            return None
        try:
            intent = ResolvedIntent.model_validate(
                {**{k: v for k, v in payload.items() if v is not None}, "source": "llm"}
            )
        except ValidationError as e:
            logger.warning(f"Model returned an invalid intent payload: {e}")
            return None
        if intent.intent == IntentTag.UNKNOWN:
            return None
        return intent


ai_service = AIService(settings.openai_api_key, settings.openai_model)
