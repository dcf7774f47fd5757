"""
Configuration loader for the session engine.

Handles loading and validating engine configuration files.
"""

import json
import sys
from pathlib import Path
from typing import Optional

from .models import EngineConfig


def load_config(config_path: Optional[Path] = None) -> EngineConfig:
    """
    Load engine configuration from a JSON file.

    Args:
        config_path: Path to the configuration file. If None, looks for
                    'engine.json' next to the executable/script.

    Returns:
        EngineConfig object with validated configuration

    Raises:
        ValueError: If config is invalid
    """
    if config_path is None:
        if getattr(sys, 'frozen', False):
            exe_dir = Path(sys.executable).parent
        else:
            exe_dir = Path(__file__).parent.parent

        config_path = exe_dir / "engine.json"

    config_path = Path(config_path)
    if not config_path.exists():
        print(f"Warning: Config file '{config_path}' not found. Using default configuration.")
        return EngineConfig.default()

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in config file: {e}")
    except OSError as e:
        raise ValueError(f"Error reading config file: {e}")

    if not isinstance(data, dict):
        raise ValueError("Invalid configuration: top level must be a JSON object")

    try:
        config = EngineConfig.from_dict(data)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid configuration: {e}")

    is_valid, error_message = config.validate()
    if not is_valid:
        raise ValueError(f"Invalid configuration: {error_message}")

    return config


def create_sample_config(output_path: Path):
    """
    Create a sample configuration file for assessment administrators.

    Args:
        output_path: Path where to save the sample config
    """
    sample_config = EngineConfig.default().to_dict()
    sample_config.update({
        "_comment": "Sample session engine configuration. Adjust values as needed.",
        "_instructions": {
            "face_sample_interval_seconds": "Seconds between face-detection samples",
            "screen_sample_interval_seconds": "Seconds between visibility/fullscreen checks",
            "default_duration_minutes": "Time limit when an assessment does not set one",
            "session_flag_penalty": "Authenticity points lost per tab switch, blocked shortcut or context menu",
            "monitor_flag_penalty": "Authenticity points lost per camera or screen red flag",
            "attention_flag_penalty": "Attention points lost per face-detection red flag",
            "option_keys": "Answer keys a candidate may select",
            "shuffle_questions": "Give each candidate a stable shuffled question order",
            "require_camera": "Refuse to start until camera and microphone are granted",
            "session_log_name": "File name of the activity log in the work directory"
        },
        "_examples": [
            {
                "description": "Lenient monitoring: camera flags weigh less than browser events",
                "monitor_flag_penalty": 3,
                "session_flag_penalty": 5
            },
            {
                "description": "Practice run without a camera",
                "require_camera": False,
                "default_duration_minutes": 20
            }
        ]
    })

    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(sample_config, f, indent=2)

    print(f"Sample configuration created at: {output_path}")
