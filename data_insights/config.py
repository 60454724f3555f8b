# data_insights/config.py
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


@dataclass
class PathConfig:
    """Configuration for project paths"""
    PROJECT_ROOT: Path
    LOGS_DIR: Path


@dataclass
class InsightConfig:
    """Configuration for the insight engine"""
    NUMERIC_RATIO_THRESHOLD: float  # share of non-missing cells that must be numeric


@dataclass
class IngestionConfig:
    """Configuration for reading record sources"""
    MAX_FILE_SIZE_MB: int
    SUPPORTED_FILE_FORMATS: List[str]
    ENCODINGS: List[str]
    DELIMITERS: List[str]


@dataclass
class QAConfig:
    """Configuration for the question-answering service"""
    MODEL_NAME: str
    SAMPLE_ROWS: int
    API_KEY: Optional[str] = field(default=None, repr=False)


@dataclass
class DeploymentConfig:
    """Configuration for the HTTP API"""
    DEFAULT_PORT: int
    DEFAULT_HOST: str
    WORKERS: int
    MAX_REQUEST_SIZE: int
    ENABLE_CORS: bool
    ENABLE_DOCS: bool
    PREVIEW_ROWS: int


class Config:
    """Central configuration manager for the insight service"""
    
    def __init__(self, config_file: Optional[str] = None):
        """
        Initialize configuration
        
        Args:
            config_file: Optional path to JSON config file to override defaults
        """
        self._load_default_config()
        
        if config_file and os.path.exists(config_file):
            self._load_config_file(config_file)
        
        self._load_environment_variables()
    
    def _load_default_config(self):
        """Load default configuration values"""
        
        project_root = Path(__file__).parent.parent
        self.paths = PathConfig(
            PROJECT_ROOT=project_root,
            LOGS_DIR=project_root / "logs"
        )
        
        self.insights = InsightConfig(
            NUMERIC_RATIO_THRESHOLD=0.8
        )
        
        self.ingestion = IngestionConfig(
            MAX_FILE_SIZE_MB=50,
            SUPPORTED_FILE_FORMATS=['.csv', '.tsv', '.txt'],
            ENCODINGS=['utf-8', 'latin-1', 'cp1252'],
            DELIMITERS=[',', ';', '\t']
        )
        
        self.qa = QAConfig(
            MODEL_NAME="gemini-2.5-flash",
            SAMPLE_ROWS=5,
            API_KEY=None
        )
        
        self.deployment = DeploymentConfig(
            DEFAULT_PORT=8000,
            DEFAULT_HOST="0.0.0.0",
            WORKERS=1,
            MAX_REQUEST_SIZE=50 * 1024 * 1024,  # 50MB
            ENABLE_CORS=True,
            ENABLE_DOCS=True,
            PREVIEW_ROWS=10
        )
        
        self.logging_level = "INFO"
        self.debug_mode = False
    
    def _load_config_file(self, config_file: str):
        """Load configuration from JSON file"""
        try:
            with open(config_file, 'r') as f:
                config_data = json.load(f)
            
            for section, values in config_data.items():
                if hasattr(self, section):
                    config_obj = getattr(self, section)
                    if not isinstance(values, dict):
                        setattr(self, section, values)
                        continue
                    for key, value in values.items():
                        if hasattr(config_obj, key):
                            setattr(config_obj, key, value)
        
        except (OSError, ValueError) as e:
            logger.warning(f"Could not load config file {config_file}: {e}")
    
    def _load_environment_variables(self):
        """Load configuration from environment variables"""
        env_path = self.paths.PROJECT_ROOT / ".env"
        load_dotenv(dotenv_path=env_path)
        
        # Insight engine
        if os.getenv("NUMERIC_RATIO_THRESHOLD"):
            self.insights.NUMERIC_RATIO_THRESHOLD = float(os.getenv("NUMERIC_RATIO_THRESHOLD"))
        
        # Ingestion
        if os.getenv("MAX_FILE_SIZE_MB"):
            self.ingestion.MAX_FILE_SIZE_MB = int(os.getenv("MAX_FILE_SIZE_MB"))
        
        # Question answering
        api_key = os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY")
        if api_key:
            self.qa.API_KEY = api_key
        
        if os.getenv("QA_MODEL_NAME"):
            self.qa.MODEL_NAME = os.getenv("QA_MODEL_NAME")
        
        if os.getenv("QA_SAMPLE_ROWS"):
            self.qa.SAMPLE_ROWS = int(os.getenv("QA_SAMPLE_ROWS"))
        
        # Deployment settings
        if os.getenv("API_PORT"):
            self.deployment.DEFAULT_PORT = int(os.getenv("API_PORT"))
        
        if os.getenv("API_HOST"):
            self.deployment.DEFAULT_HOST = os.getenv("API_HOST")
        
        if os.getenv("API_WORKERS"):
            self.deployment.WORKERS = int(os.getenv("API_WORKERS"))
        
        # General settings
        if os.getenv("LOG_LEVEL"):
            self.logging_level = os.getenv("LOG_LEVEL")
        
        if os.getenv("DEBUG_MODE"):
            self.debug_mode = os.getenv("DEBUG_MODE").lower() == 'true'
    
    def create_directories(self):
        """Create necessary directories if they don't exist"""
        self.paths.LOGS_DIR.mkdir(parents=True, exist_ok=True)
    
    def save_config(self, config_file: str):
        """Save current configuration to JSON file"""
        config_dict: Dict[str, Any] = {}
        
        for attr_name, attr_value in vars(self).items():
            if attr_name.startswith('_'):
                continue
            if hasattr(attr_value, '__dict__'):
                config_dict[attr_name] = {}
                for field_name, field_value in attr_value.__dict__.items():
                    if field_name == 'API_KEY':
                        continue
                    if isinstance(field_value, Path):
                        config_dict[attr_name][field_name] = str(field_value)
                    else:
                        config_dict[attr_name][field_name] = field_value
            else:
                config_dict[attr_name] = attr_value
        
        with open(config_file, 'w') as f:
            json.dump(config_dict, f, indent=2)
    
    def validate_config(self) -> List[str]:
        """Validate configuration and return list of issues"""
        issues = []
        
        threshold = self.insights.NUMERIC_RATIO_THRESHOLD
        if threshold < 0 or threshold >= 1:
            issues.append(f"Invalid numeric ratio threshold: {threshold}")
        
        if self.ingestion.MAX_FILE_SIZE_MB <= 0:
            issues.append(f"Invalid max file size: {self.ingestion.MAX_FILE_SIZE_MB}")
        
        if not self.ingestion.DELIMITERS:
            issues.append("At least one delimiter is required")
        
        if not self.ingestion.ENCODINGS:
            issues.append("At least one encoding is required")
        
        if self.qa.SAMPLE_ROWS < 0:
            issues.append(f"Invalid QA sample size: {self.qa.SAMPLE_ROWS}")
        
        if not 0 < self.deployment.DEFAULT_PORT < 65536:
            issues.append(f"Invalid API port: {self.deployment.DEFAULT_PORT}")
        
        return issues
    
    def __str__(self) -> str:
        return f"Config(project_root={self.paths.PROJECT_ROOT}, debug={self.debug_mode})"


# Global configuration instance
_config = None


def get_config(config_file: Optional[str] = None) -> Config:
    """Get global configuration instance (singleton pattern)"""
    global _config
    if _config is None:
        _config = Config(config_file)
    return _config


def reload_config(config_file: Optional[str] = None) -> Config:
    """Reload configuration (useful for testing)"""
    global _config
    _config = Config(config_file)
    return _config


# Example configuration file template
CONFIG_TEMPLATE = {
    "insights": {
        "NUMERIC_RATIO_THRESHOLD": 0.8
    },
    "ingestion": {
        "MAX_FILE_SIZE_MB": 50,
        "DELIMITERS": [",", ";", "\t"]
    },
    "qa": {
        "MODEL_NAME": "gemini-2.5-flash",
        "SAMPLE_ROWS": 5
    },
    "deployment": {
        "DEFAULT_PORT": 8080,
        "WORKERS": 2
    }
}


def create_config_template(output_file: str):
    """Create a configuration template file"""
    with open(output_file, 'w') as f:
        json.dump(CONFIG_TEMPLATE, f, indent=2)
    logger.info(f"Configuration template created: {output_file}")
