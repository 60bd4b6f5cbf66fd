"""
InfoRx - Hosted interpretation capability

Backs the /api/interpret endpoint that the interpretation client calls.
Uses an external language model when configured and falls back to a
rule-based local interpreter otherwise.

IMPORTANT: This module does not provide medical diagnoses.
"""

import re
from typing import Dict, List, Optional, Tuple

from app.config import settings
from app.core.examples import detect_document_type
from app.models.schemas import DocumentType, Language, MedicalInterpretation
from app.utils.logger import get_logger

logger = get_logger("medical_interpreter")


EXPLANATION_MARKER = "\U0001F4D8"  # 📘
ACTIONS_MARKER = "\U0001F4A1"      # 💡
WARNING_MARKER = "\u26a0"          # usually followed by U+FE0F

_SECTION_SPLIT = re.compile(f"(?=[{EXPLANATION_MARKER}{ACTIONS_MARKER}{WARNING_MARKER}])")
_SECTION_BODY = re.compile(r"^.*?:\s*(.*)$", re.DOTALL)
_LIST_PREFIX = re.compile(r"^\s*(?:[-•*]|\d+[.)])\s*")

FALLBACK_ACTIONS = {
    Language.ENGLISH: ["Consult with your healthcare provider for detailed guidance"],
    Language.PIDGIN: ["Make you see your doctor make dem explain am well well"],
}
FALLBACK_INDICATORS = {
    Language.ENGLISH: ["Seek immediate medical attention if you experience concerning symptoms"],
    Language.PIDGIN: ["If you begin feel any bad sign, go hospital sharp sharp"],
}


def build_prompt(text: str, language: Language) -> str:
    """Build the interpretation prompt for the language model."""
    return f"""
You are InfoRx, a helpful medical assistant for patients in Nigeria.

Your task is to interpret unclear prescriptions, lab results, or scan summaries, and respond in clear, simple, human-friendly language - either in English or Pidgin.

Be detailed. Use multiple sentences. Include clear explanations and guidance that anyone without medical knowledge can understand.

**Use this format in your response:**

{EXPLANATION_MARKER} Explanation:
Explain what the input means. Add useful background, e.g. what the medicine does or what the result means. Avoid medical jargon.

{ACTIONS_MARKER} What to Do:
Give clear next steps for the patient. Include dosage, lifestyle tips, food to eat/avoid, etc. Use full sentences. Put each step on its own line.

{WARNING_MARKER}\ufe0f When to See a Doctor:
List 2-3 possible warning signs, one per line. Be specific and include timelines where helpful.

Respond in: {language.display_name}

Input:
\"\"\"
{text}
\"\"\"
"""


def _list_items(body: str) -> List[str]:
    items = []
    for line in body.split("\n"):
        item = _LIST_PREFIX.sub("", line).replace("**", "").strip()
        if item:
            items.append(item)
    return items


def parse_sections(content: str, language: Language = Language.ENGLISH) -> MedicalInterpretation:
    """
    Split model output into the three interpretation sections.

    Output with none of the section markers is kept whole as the
    explanation with generic advice attached.
    """
    explanation = ""
    actions: List[str] = []
    indicators: List[str] = []

    for section in _SECTION_SPLIT.split(content):
        section = section.strip()
        match = _SECTION_BODY.match(section)
        body = match.group(1).strip() if match else ""

        if section.startswith(EXPLANATION_MARKER):
            explanation = body.replace("**", "")
        elif section.startswith(ACTIONS_MARKER):
            actions = _list_items(body)
        elif section.startswith(WARNING_MARKER):
            indicators = _list_items(body)

    if not explanation and not actions and not indicators:
        return MedicalInterpretation(
            simple_explanation=content.strip(),
            recommended_actions=list(FALLBACK_ACTIONS[language]),
            medical_attention_indicators=list(FALLBACK_INDICATORS[language]),
        )

    return MedicalInterpretation(
        simple_explanation=explanation,
        recommended_actions=actions,
        medical_attention_indicators=indicators,
    )


class LocalInterpreter:
    """
    Rule-based interpreter used when no language model is available.

    Recognizes common dosing abbreviations and flagged lab values; it
    never goes beyond restating what the document says.
    """

    DOSING_TERMS = {
        "once daily": ("once a day", "one time every day"),
        "twice daily": ("two times a day", "two times every day"),
        "three times daily": ("three times a day", "three times every day"),
        "bid": ("two times a day", "two times every day"),
        "tid": ("three times a day", "three times every day"),
        "qid": ("four times a day", "four times every day"),
        "qd": ("once a day", "one time every day"),
        "prn": ("only when needed", "only when you need am"),
        "po": ("by mouth", "through mouth"),
        "with meals": ("with food", "with food"),
    }

    FLAGGED_VALUE = re.compile(
        r"([A-Za-z][A-Za-z ]{1,30}?)\s*:\s*[\d.,]+\s*[^\s(,]*\s*\(\s*(high|low)\b",
        re.IGNORECASE
    )

    PHRASES = {
        Language.ENGLISH: {
            DocumentType.PRESCRIPTION: "This is a prescription. It tells you which medicine to take and how often.",
            DocumentType.LAB_RESULT: "This is a laboratory result. It compares your test values with normal ranges.",
            DocumentType.SCAN_SUMMARY: "This is a scan report. It describes what the doctor saw in the images of your body.",
            None: "This is a medical document. Your doctor can explain the details that apply to you.",
            "dosing": "The instructions mean: {terms}.",
            "flagged": "Some values are outside the normal range: {values}.",
            "no_flags": "No values are marked as high or low.",
            "actions": [
                "Follow the instructions exactly as written",
                "Bring this document to your next clinic visit",
                "Ask your doctor or pharmacist about anything you do not understand",
            ],
            "indicators": [
                "Rash, swelling or difficulty breathing",
                "Symptoms that get worse or do not improve within a few days",
            ],
            "high": "high",
            "low": "low",
        },
        Language.PIDGIN: {
            DocumentType.PRESCRIPTION: "Dis na prescription. E dey tell you which medicine to take and how many times.",
            DocumentType.LAB_RESULT: "Dis na lab result. E dey compare your test numbers with normal range.",
            DocumentType.SCAN_SUMMARY: "Dis na scan report. E talk wetin doctor see for inside your body.",
            None: "Dis na medical paper. Your doctor fit explain wetin concern you.",
            "dosing": "Wetin dem write mean say: {terms}.",
            "flagged": "Some numbers no dey normal range: {values}.",
            "no_flags": "Dem no mark any number as high or low.",
            "actions": [
                "Do am exactly as dem write am",
                "Carry dis paper go your next hospital visit",
                "Ask your doctor or pharmacist anything wey you no understand",
            ],
            "indicators": [
                "Rash, body swelling or if breath no dey come well",
                "If the sickness dey worse or e no better after some days",
            ],
            "high": "e high",
            "low": "e low",
        },
    }

    def interpret(self, text: str, language: Language) -> MedicalInterpretation:
        phrases = self.PHRASES[language]
        document_type = detect_document_type(text)
        sentences = [phrases[document_type]]

        terms = self._dosing_terms(text, language)
        if terms:
            sentences.append(phrases["dosing"].format(terms=", ".join(terms)))

        if document_type == DocumentType.LAB_RESULT:
            flagged = self._flagged_values(text)
            if flagged:
                values = ", ".join(
                    f"{name} ({phrases[direction]})" for name, direction in flagged
                )
                sentences.append(phrases["flagged"].format(values=values))
            else:
                sentences.append(phrases["no_flags"])

        return MedicalInterpretation(
            simple_explanation=" ".join(sentences),
            recommended_actions=list(phrases["actions"]),
            medical_attention_indicators=list(phrases["indicators"]),
        )

    def _dosing_terms(self, text: str, language: Language) -> List[str]:
        index = 0 if language == Language.ENGLISH else 1
        found = []
        for term, meanings in self.DOSING_TERMS.items():
            if re.search(r"\b" + re.escape(term) + r"\b", text, re.IGNORECASE):
                if meanings[index] not in found:
                    found.append(meanings[index])
        return found

    def _flagged_values(self, text: str) -> List[Tuple[str, str]]:
        return [
            (name.strip(), direction.lower())
            for name, direction in self.FLAGGED_VALUE.findall(text)
        ]


class MedicalInterpreter:
    """
    Language model integration for medical text interpretation.

    Outputs are informational only and do not constitute medical
    diagnoses.
    """

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self.client = None
        self.model = "rule-based-interpreter"
        self.provider = "local"
        self.local = LocalInterpreter()
        self._initialize_external_provider(
            settings.gemini_api_key.get_secret_value() if api_key is None else api_key,
            model or settings.gemini_model
        )

    def _initialize_external_provider(self, api_key: str, model: str) -> None:
        """Attempt to initialize external language model provider."""
        if not api_key:
            logger.info("External provider not configured, using local interpretation")
            return

        try:
            from google import genai
            self.client = genai.Client(api_key=api_key)
            self.provider = "external"
            self.model = model
            logger.info("External provider initialized", model=self.model)
        except Exception as e:
            logger.info("Using local interpretation", reason=str(e))

    async def interpret(self, text: str, language: Language) -> MedicalInterpretation:
        """
        Interpret medical text into the structured shape.

        Args:
            text: Normalized medical text
            language: Target language

        Returns:
            MedicalInterpretation
        """
        if self.client:
            try:
                return await self._external_interpretation(text, language)
            except Exception as e:
                logger.info("External interpretation unavailable, using local", reason=str(e))

        logger.info("Performing local interpretation", language=language.value)
        return self.local.interpret(text, language)

    async def _external_interpretation(
        self,
        text: str,
        language: Language
    ) -> MedicalInterpretation:
        response = await self.client.aio.models.generate_content(
            model=self.model,
            contents=build_prompt(text, language)
        )
        content = response.text or ""
        if not content.strip():
            raise ValueError("empty model response")

        logger.info("External interpretation completed", model=self.model)
        return parse_sections(content, language)

    def get_status(self) -> Dict[str, object]:
        """Get interpreter status information."""
        return {
            "provider": self.provider,
            "model": self.model,
            "external_configured": self.client is not None,
        }


_interpreter_instance: Optional[MedicalInterpreter] = None


def get_medical_interpreter() -> MedicalInterpreter:
    """Get or create singleton interpreter instance."""
    global _interpreter_instance
    if _interpreter_instance is None:
        _interpreter_instance = MedicalInterpreter()
    return _interpreter_instance
