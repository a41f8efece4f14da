"""
Pipeline YAML parser and validator.
"""

import os
import yaml
from string import Template
from typing import List, Dict, Any, Optional, Mapping

from runner.src.models.step import PipelineStep

class PipelineConfigError(Exception):
    """Raised when pipeline configuration is invalid."""
    pass

def parse_pipeline_config(
    yaml_content: str,
    variables: Optional[Mapping[str, str]] = None,
) -> List[PipelineStep]:
    """Parse pipeline YAML configuration from string."""
    try:
        config = yaml.safe_load(yaml_content)
    except yaml.YAMLError as e:
        raise PipelineConfigError(f"Invalid YAML: {e}")
    
    return validate_config(config, variables)

def parse_pipeline_dict(
    config: Dict[str, Any],
    variables: Optional[Mapping[str, str]] = None,
) -> List[PipelineStep]:
    """Validate pipeline configuration from dict."""
    return validate_config(config, variables)

def load_pipeline_file(
    path: str,
    variables: Optional[Mapping[str, str]] = None,
) -> List[PipelineStep]:
    """Read and validate a pipeline definition file."""
    if not os.path.exists(path):
        raise PipelineConfigError(f"Pipeline file not found: {path}")
    
    with open(path, "r") as f:
        return parse_pipeline_config(f.read(), variables)

def default_pipeline_steps(variables: Mapping[str, str]) -> List[PipelineStep]:
    """The built-in build-then-deploy pipeline."""
    return parse_pipeline_dict(
        {
            "steps": [
                {
                    "name": "Build",
                    "command": "npm run build",
                    "env": {"NODE_ENV": "production"},
                },
                {
                    "name": "Deploy",
                    "command": "docker deploy -p $DEPLOYMENT_ENVIRONMENT",
                    "env": {"DEPLOYMENT_ENVIRONMENT": "$DEPLOYMENT_ENVIRONMENT"},
                },
            ]
        },
        variables,
    )

def validate_config(
    config: Optional[Dict[str, Any]],
    variables: Optional[Mapping[str, str]] = None,
) -> List[PipelineStep]:
    """Validate pipeline configuration structure."""
    if not config:
        raise PipelineConfigError("Empty pipeline configuration")
    
    if not isinstance(config, dict):
        raise PipelineConfigError("Pipeline configuration must be a dictionary")
    
    # Validate steps
    if "steps" not in config:
        raise PipelineConfigError("Pipeline must have 'steps' defined")
    
    steps = config["steps"]
    if not isinstance(steps, list):
        raise PipelineConfigError("Pipeline 'steps' must be a list")
    
    if len(steps) == 0:
        raise PipelineConfigError("Pipeline must have at least one step")
    
    validated_steps = []
    names = set()
    for i, step in enumerate(steps):
        validated_step = validate_step(step, i, variables or {})
        if validated_step.name in names:
            raise PipelineConfigError(f"Step {i} has duplicate name '{validated_step.name}'")
        names.add(validated_step.name)
        validated_steps.append(validated_step)
    
    return validated_steps

def validate_step(
    step: Dict[str, Any],
    index: int,
    variables: Mapping[str, str],
) -> PipelineStep:
    """Validate a single pipeline step."""
    if not isinstance(step, dict):
        raise PipelineConfigError(f"Step {index} must be a dictionary")
    
    # Required fields
    if "name" not in step:
        raise PipelineConfigError(f"Step {index} missing 'name'")
    
    if "command" not in step:
        raise PipelineConfigError(f"Step {index} missing 'command'")
    
    # Validate types
    if not isinstance(step["name"], str) or not step["name"].strip():
        raise PipelineConfigError(f"Step {index} 'name' must be a non-empty string")
    
    if not isinstance(step["command"], str) or not step["command"].strip():
        raise PipelineConfigError(f"Step {index} 'command' must be a non-empty string")
    
    env = step.get("env") or {}
    if not isinstance(env, dict):
        raise PipelineConfigError(f"Step {index} 'env' must be a mapping")
    
    environment_variables = {}
    for key, value in env.items():
        if not isinstance(key, str):
            raise PipelineConfigError(f"Step {index} env key {key!r} must be a string")
        if isinstance(value, (dict, list)) or value is None:
            raise PipelineConfigError(f"Step {index} env '{key}' must be a scalar")
        # YAML turns `true` and `8080` into bool/int
        if isinstance(value, bool):
            value = "true" if value else "false"
        environment_variables[key] = _substitute(str(value), variables)
    
    shell = step.get("shell", False)
    if not isinstance(shell, bool):
        raise PipelineConfigError(f"Step {index} 'shell' must be a boolean")
    
    timeout = step.get("timeout")
    if timeout is not None:
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise PipelineConfigError(f"Step {index} 'timeout' must be a positive number")
    
    working_directory = step.get("working_directory")
    if working_directory is not None and not isinstance(working_directory, str):
        raise PipelineConfigError(f"Step {index} 'working_directory' must be a string")
    
    return PipelineStep(
        name=step["name"],
        command=_substitute(step["command"], variables),
        environment_variables=environment_variables,
        shell=shell,
        timeout=timeout,
        working_directory=working_directory,
    )

def _substitute(value: str, variables: Mapping[str, str]) -> str:
    # Unknown $NAMES are left alone for the step's own shell
    return Template(value).safe_substitute(variables)
