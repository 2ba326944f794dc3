"""Pipeline catalog, execution and script export."""

from .catalog import (
    OperationDescriptor,
    ParameterKind,
    ParameterSpec,
    UnknownOperationError,
    categories,
    defaults_for,
    get_operation,
    operations_in,
    parameter_keys,
    resolve_parameters,
)
from .codegen import CodeSynthesizer, generate_script
from .executor import (
    BufferSlot,
    ExecutionState,
    PipelineExecutor,
    RunResult,
    StepExecutionError,
    StepFailure,
)
from .pipeline import Pipeline, PipelineStep
from .registry import OperationVariant, RegistryError, export_omissions, unsupported_operations

__all__ = [
    "BufferSlot",
    "CodeSynthesizer",
    "ExecutionState",
    "OperationDescriptor",
    "OperationVariant",
    "ParameterKind",
    "ParameterSpec",
    "Pipeline",
    "PipelineExecutor",
    "PipelineStep",
    "RegistryError",
    "RunResult",
    "StepExecutionError",
    "StepFailure",
    "UnknownOperationError",
    "categories",
    "defaults_for",
    "export_omissions",
    "generate_script",
    "get_operation",
    "operations_in",
    "parameter_keys",
    "resolve_parameters",
    "unsupported_operations",
]
