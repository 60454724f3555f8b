"""
Dataset Question Answering
Conversational Q&A about an uploaded dataset, backed by Google Gemini.
The SDK is only imported when a client is actually built.
"""

import logging
import os
import threading
from typing import Any, Iterator, List, Optional, Sequence

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_SAMPLE_ROWS = 5

SYSTEM_INSTRUCTION = """You are an expert data analyst. You answer questions about a CSV dataset supplied by the user.
- Each message starts with a summary of the dataset: its size, column headers and a few sample rows.
- The user's question follows the summary.
- Base your answer *only* on the data provided.
- If the question cannot be answered from the data, say so clearly.
- Keep explanations concise and clear.
- Wrap column names in backticks, like `column_name`.
- Format answers in Markdown.
- Never invent data or make assumptions beyond what is given."""


class QAConfigurationError(RuntimeError):
    """Raised when the question-answering service cannot be set up"""


def _format_cell(value: Any) -> str:
    if value is None or value == '':
        return ''
    text = str(getattr(value, 'value', value))
    return '"' + text.replace('"', '""') + '"'


def prepare_data_summary(records: Sequence[dict], sample_size: int = DEFAULT_SAMPLE_ROWS) -> str:
    """
    Build the compact dataset description sent ahead of every question.
    
    Args:
        records: Raw records in file order
        sample_size: Number of leading rows to include verbatim
        
    Returns:
        Summary text
    """
    if not records:
        return "The CSV file is empty."
    
    columns = list(records[0].keys())
    sample_rows = "\n".join(
        ",".join(_format_cell(row.get(column)) for column in columns)
        for row in records[:sample_size]
    )
    
    summary = f"The user has uploaded a CSV file with {len(records)} rows and {len(columns)} columns.\n"
    summary += f"The column headers are: {', '.join(columns)}\n\n"
    summary += f"Here are the first {min(sample_size, len(records))} rows of the data:\n{sample_rows}\n\n"
    
    return summary


def build_prompt(question: str, records: Sequence[dict], sample_size: int = DEFAULT_SAMPLE_ROWS) -> str:
    """Combine the dataset summary and the user's question"""
    return f"{prepare_data_summary(records, sample_size)}User's Question: \"{question}\""


class QuestionAnsweringAgent:
    """
    Streams answers to natural-language questions about a dataset.
    
    One agent holds one conversation, so follow-up questions keep the
    context of earlier ones.
    """
    
    def __init__(
        self,
        client: Any = None,
        model: str = DEFAULT_MODEL,
        api_key: Optional[str] = None,
        sample_size: int = DEFAULT_SAMPLE_ROWS
    ):
        """
        Args:
            client: Pre-built genai client (built from api_key when omitted)
            model: Gemini model name
            api_key: Google API key (defaults to GEMINI_API_KEY / API_KEY env vars)
            sample_size: Rows included in each dataset summary
        """
        self.model = model
        self.sample_size = sample_size
        self.api_key = api_key or os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY")
        self._client = client
        self._chat = None
        # One question at a time per conversation
        self._lock = threading.Lock()
    
    @classmethod
    def from_config(cls, config, client: Any = None) -> "QuestionAnsweringAgent":
        return cls(
            client=client,
            model=config.qa.MODEL_NAME,
            api_key=config.qa.API_KEY,
            sample_size=config.qa.SAMPLE_ROWS
        )
    
    @property
    def client(self):
        if self._client is None:
            self._client = self._build_client()
        return self._client
    
    def _build_client(self):
        if not self.api_key:
            raise QAConfigurationError("API_KEY environment variable not set.")
        
        try:
            from google import genai
        except ImportError as e:
            raise QAConfigurationError(
                f"Google GenAI SDK not installed. Install with: pip install google-genai. Error: {e}"
            ) from e
        
        logger.info("Gemini client initialized")
        return genai.Client(api_key=self.api_key)
    
    def _get_chat(self):
        if self._chat is None:
            from google.genai import types
            
            self._chat = self.client.chats.create(
                model=self.model,
                config=types.GenerateContentConfig(system_instruction=SYSTEM_INSTRUCTION)
            )
        return self._chat
    
    def reset(self):
        """Forget the conversation so far"""
        self._chat = None
    
    def stream_answer(self, question: str, records: Sequence[dict]) -> Iterator[str]:
        """
        Yield answer text chunks as the model produces them.
        
        Concurrent questions on the same agent are serialized so the
        conversation history never interleaves.
        """
        prompt = build_prompt(question, records, self.sample_size)
        
        with self._lock:
            chat = self._get_chat()
            
            logger.info(f"Asking {self.model} about {len(records)} rows")
            
            for chunk in chat.send_message_stream(prompt):
                text = getattr(chunk, 'text', None)
                if text:
                    yield text
    
    def answer(self, question: str, records: Sequence[dict]) -> str:
        """Collect a full answer"""
        parts: List[str] = list(self.stream_answer(question, records))
        return "".join(parts)
