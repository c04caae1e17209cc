"""Reference checking and insertion."""

from codegen.allocator import ReferenceAllocator, ReferenceIdOverflowError
from codegen.engine import (
    CheckResult,
    CodeDiscoveryError,
    CodegenError,
    GenerateResult,
    NoSourceFilesError,
    RunCancelledError,
    check_references,
    generate_code,
    process_references,
)
from codegen.processors import (
    CountMissingProcessor,
    InsertReferencesProcessor,
    NextReferenceIdProcessor,
    ProcessorParams,
)
from codegen.rewrite import AtomicRewrite

__all__ = [
    "AtomicRewrite",
    "CheckResult",
    "CodeDiscoveryError",
    "CodegenError",
    "CountMissingProcessor",
    "GenerateResult",
    "InsertReferencesProcessor",
    "NextReferenceIdProcessor",
    "NoSourceFilesError",
    "ProcessorParams",
    "ReferenceAllocator",
    "ReferenceIdOverflowError",
    "RunCancelledError",
    "check_references",
    "generate_code",
    "process_references",
]
