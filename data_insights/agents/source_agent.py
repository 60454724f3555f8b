# data_insights/agents/source_agent.py
import io
import logging
from pathlib import Path
from typing import List, Optional, Sequence

import pandas as pd

from data_insights.types import RawRow
from data_insights.utils.logging_config import log_execution_time

logger = logging.getLogger(__name__)


class RecordSourceError(Exception):
    """Base class for failures while turning a source into raw rows"""


class EmptyInputError(RecordSourceError):
    """The source holds no data rows"""


class UnreadableSourceError(RecordSourceError):
    """The source could not be read at all"""


class MalformedSourceError(RecordSourceError):
    """The source could not be decoded into rectangular rows"""


class RecordSourceAgent:
    """Agent responsible for reading delimited text into raw records"""
    
    def __init__(self,
                 max_file_size_mb: int = 50,
                 supported_formats: Optional[Sequence[str]] = None,
                 encodings: Optional[Sequence[str]] = None,
                 delimiters: Optional[Sequence[str]] = None):
        self.max_file_size_mb = max_file_size_mb
        self.supported_formats = list(supported_formats or ['.csv', '.tsv', '.txt'])
        self.encodings = list(encodings or ['utf-8', 'latin-1', 'cp1252'])
        self.delimiters = list(delimiters or [',', ';', '\t'])
    
    @classmethod
    def from_config(cls, config) -> "RecordSourceAgent":
        ingestion = config.ingestion
        return cls(
            max_file_size_mb=ingestion.MAX_FILE_SIZE_MB,
            supported_formats=ingestion.SUPPORTED_FILE_FORMATS,
            encodings=ingestion.ENCODINGS,
            delimiters=ingestion.DELIMITERS
        )
    
    async def process(self, state: dict) -> dict:
        """Main processing function for record loading"""
        logger.info(f"Starting record loading for: {state['data_path']}")
        
        try:
            records = self.load_records(state['data_path'])
            columns = list(records[0].keys())
            
            state.update({
                'raw_records': records,
                'source_info': {
                    'file_name': Path(state['data_path']).name,
                    'row_count': len(records),
                    'column_count': len(columns),
                    'columns': columns
                },
                'current_step': 'record_loading',
                'next_action': 'value_normalization'
            })
            
            state['execution_log'].append(
                f"Records loaded successfully: {len(records)} rows, {len(columns)} columns"
            )
            
            return state
            
        except RecordSourceError as e:
            logger.error(f"Record loading failed: {str(e)}")
            state.setdefault('errors', []).append(f"{type(e).__name__}: {str(e)}")
            state['next_action'] = 'error'
            return state
    
    @log_execution_time
    def load_records(self, data_path: str) -> List[RawRow]:
        """Read a delimited text file into raw records"""
        path = Path(data_path)
        
        if not path.exists():
            raise UnreadableSourceError(f"Data file not found: {data_path}")
        
        self._check_extension(path.name)
        
        try:
            file_size_mb = path.stat().st_size / (1024 * 1024)
            if file_size_mb > self.max_file_size_mb:
                raise UnreadableSourceError(
                    f"File too large: {file_size_mb:.1f}MB > {self.max_file_size_mb}MB"
                )
            content = path.read_bytes()
        except OSError as e:
            raise UnreadableSourceError(f"Failed to read the file: {e}") from e
        
        return self.parse_bytes(content)
    
    def parse_bytes(self, content: bytes, file_name: Optional[str] = None) -> List[RawRow]:
        """Decode raw bytes and parse them into records"""
        if file_name:
            self._check_extension(file_name)
        
        if content is None:
            raise UnreadableSourceError("File is empty or could not be read.")
        
        size_mb = len(content) / (1024 * 1024)
        if size_mb > self.max_file_size_mb:
            raise UnreadableSourceError(f"File too large: {size_mb:.1f}MB > {self.max_file_size_mb}MB")
        
        return self.parse_text(self._decode(content))
    
    def parse_text(self, text: str) -> List[RawRow]:
        """
        Parse delimited text into raw records.
        
        Every cell is kept as its raw string; empty and absent cells become "".
        The first delimiter producing more than one column wins. A single
        column is only accepted from the primary delimiter's parse; when that
        parse fails and no other delimiter yields several columns the source
        is malformed.
        """
        if not text or not text.strip():
            raise EmptyInputError("File is empty or could not be read.")
        
        primary = self.delimiters[0]
        fallback = None
        last_error = None
        
        for sep in self.delimiters:
            try:
                data = pd.read_csv(
                    io.StringIO(text),
                    sep=sep,
                    dtype=str,
                    keep_default_na=False,
                    index_col=False,
                    skipinitialspace=False
                )
            except pd.errors.EmptyDataError as e:
                raise EmptyInputError("File is empty or could not be read.") from e
            except (pd.errors.ParserError, ValueError) as e:
                if sep == primary:
                    last_error = e
                continue
            
            if data.shape[1] > 1:
                return self._to_records(data)
            if sep == primary:
                fallback = data
        
        if fallback is None:
            raise MalformedSourceError(f"Could not parse the file into rows: {last_error}")
        
        return self._to_records(fallback)
    
    def _to_records(self, data: pd.DataFrame) -> List[RawRow]:
        if data.empty:
            raise EmptyInputError("CSV file contains no data rows.")
        
        columns = [str(column) for column in data.columns]
        records = []
        for values in data.itertuples(index=False, name=None):
            records.append({
                column: value if isinstance(value, str) else ''
                for column, value in zip(columns, values)
            })
        
        logger.debug(f"Parsed {len(records)} records with columns {columns}")
        return records
    
    def _decode(self, content: bytes) -> str:
        for encoding in self.encodings:
            codec = 'utf-8-sig' if encoding.lower().replace('_', '-') == 'utf-8' else encoding
            try:
                return content.decode(codec)
            except (UnicodeDecodeError, LookupError):
                continue
        raise UnreadableSourceError("Could not decode the file with any supported encoding")
    
    def _check_extension(self, file_name: str):
        extension = Path(file_name).suffix.lower()
        if extension not in self.supported_formats:
            raise UnreadableSourceError(f"Unsupported file format: {extension or file_name}")
