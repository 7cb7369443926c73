from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ReferenceKind(str, Enum):
    IMPORT = "import"
    CALL = "call"
    TYPE_REF = "type-ref"
    WRITE = "write"
    READ = "read"


class GuardKind(str, Enum):
    USER_DEFINED = "user-defined"
    ASSERTION = "assertion"
    TYPEOF = "typeof"
    INSTANCEOF = "instanceof"
    IN_OPERATOR = "in-operator"
    DISCRIMINANT = "discriminant"
    EQUALITY = "equality"
    NULLISH = "nullish"
    ARRAY_ISARRAY = "array-isarray"
    EARLY_RETURN = "early-return"
    EXHAUSTIVE = "exhaustive"
    COMPOUND = "compound"


class AliasKind(str, Enum):
    IMPORT_RENAME = "import-rename"
    EXPORT_RENAME = "export-rename"
    NAMESPACE = "namespace"
    DEFAULT_AS_NAMED = "default-as-named"
    TYPE_ONLY = "type-only"
    NAMESPACE_ALIAS = "namespace-alias"


class MemberKind(str, Enum):
    CONSTRUCTOR = "constructor"
    PROPERTY = "property"
    METHOD = "method"
    GETTER = "getter"
    SETTER = "setter"
    INDEX_SIGNATURE = "indexSignature"
    CALL_SIGNATURE = "callSignature"
    CONSTRUCT_SIGNATURE = "constructSignature"


class Severity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RiskLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class NotFoundReason(str, Enum):
    NO_PROJECT = "no-project"
    NO_MATCHING_FILES = "no-matching-files"
    SYMBOL_NOT_FOUND = "symbol-not-found"


class PartialReason(str, Enum):
    TIMEOUT = "timeout"
    MAX_REFERENCES = "max-references"


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------


class ApiModel(BaseModel):
    """Output model serialized with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Addressing
# ---------------------------------------------------------------------------


class SymbolRef(ApiModel):
    name: str
    file_path: str  # root-relative, forward slashes
    line: int  # 1-indexed
    is_abstract: Optional[bool] = None

    @property
    def key(self) -> str:
        return f"{self.file_path}:{self.line}"


class TypeParameter(ApiModel):
    name: str
    constraint: Optional[str] = None
    default: Optional[str] = None


# ---------------------------------------------------------------------------
# Call hierarchy
# ---------------------------------------------------------------------------


class OutgoingCall(ApiModel):
    target: SymbolRef
    call_site_lines: List[int] = Field(default_factory=list)
    outgoing_calls: List["OutgoingCall"] = Field(default_factory=list)
    cyclic: Optional[bool] = None
    depth_limited: Optional[bool] = None


class IncomingCaller(ApiModel):
    source: SymbolRef
    call_site_lines: List[int] = Field(default_factory=list)
    incoming_callers: List["IncomingCaller"] = Field(default_factory=list)
    cyclic: Optional[bool] = None
    depth_limited: Optional[bool] = None


class CallHierarchy(ApiModel):
    symbol: SymbolRef
    outgoing_calls: List[OutgoingCall] = Field(default_factory=list)
    incoming_callers: List[IncomingCaller] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Type flows
# ---------------------------------------------------------------------------


class TypeFlowType(ApiModel):
    name: str
    file_path: str
    line: int


class TypeFlowParam(ApiModel):
    name: str
    type: str
    resolved_types: List[TypeFlowType] = Field(default_factory=list)


class TypeFlow(ApiModel):
    symbol: SymbolRef
    parameters: List[TypeFlowParam] = Field(default_factory=list)
    return_type: Optional[TypeFlowParam] = None
    referenced_types: List[TypeFlowType] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# References
# ---------------------------------------------------------------------------


class FileReference(ApiModel):
    file_path: str
    lines: List[int] = Field(default_factory=list)


class References(ApiModel):
    total_count: int = 0
    file_count: int = 0
    files: List[FileReference] = Field(default_factory=list)
    partial: Optional[bool] = None
    partial_reason: Optional[PartialReason] = None


class ReferenceInfo(ApiModel):
    file: str
    line: int
    column: int
    kind: ReferenceKind
    context: str = ""


class ReferenceFileSummary(ApiModel):
    file: str
    kinds: List[ReferenceKind] = Field(default_factory=list)
    is_test_file: bool = False
    count: int = 0


class ReExportInfo(ApiModel):
    exported_as: str
    file: str
    from_: str = Field(alias="from")
    line: int
    original_name: str


# ---------------------------------------------------------------------------
# Type hierarchy
# ---------------------------------------------------------------------------


class TypeHierarchy(ApiModel):
    symbol: SymbolRef
    extends: Optional[SymbolRef] = None
    implements: List[SymbolRef] = Field(default_factory=list)
    subtypes: List[SymbolRef] = Field(default_factory=list)
    is_abstract: Optional[bool] = None
    type_parameters: List[TypeParameter] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Pattern analyzers
# ---------------------------------------------------------------------------


class TypeGuardEntry(ApiModel):
    kind: GuardKind
    line: int
    guard_text: str
    narrowed_name: str
    narrowed_to: Optional[str] = None
    is_return_type_guard: Optional[bool] = None


class TypeGuardAnalysis(ApiModel):
    symbol: SymbolRef
    guards: List[TypeGuardEntry] = Field(default_factory=list)


class CallbackUsage(ApiModel):
    callback_name: str
    called_by: str
    file_path: str
    line: int
    parameter_index: int
    bound_with_bind: Optional[bool] = None


class CallbackParameter(ApiModel):
    name: str
    parameter_index: int
    type: str


class CallbackAnalysis(ApiModel):
    symbol: SymbolRef
    used_as_callback_in: List[CallbackUsage] = Field(default_factory=list)
    callback_parameters: List[CallbackParameter] = Field(default_factory=list)
    returns_function: bool = False
    return_function_type: Optional[str] = None


class UnicodeIdentifierEntry(ApiModel):
    name: str
    normalized_name: str
    scripts: List[str] = Field(default_factory=list)
    is_mixed_script: bool = False
    has_bidi_override: bool = False
    has_zero_width: bool = False
    severity: Severity = Severity.INFO
    scope: str = "file"
    line: int


class ConfusablePair(ApiModel):
    a: str
    b: str
    reason: str


class UnicodeIdentifierAnalysis(ApiModel):
    file_path: str
    identifiers: List[UnicodeIdentifierEntry] = Field(default_factory=list)
    confusable_pairs: List[ConfusablePair] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Members, enums, aliases
# ---------------------------------------------------------------------------


class MemberInfo(ApiModel):
    name: str
    kind: MemberKind
    line: int
    type: Optional[str] = None
    modifiers: List[str] = Field(default_factory=list)


class MembersResult(ApiModel):
    symbol: SymbolRef
    members: List[MemberInfo] = Field(default_factory=list)


class EnumMemberEntry(ApiModel):
    name: str
    value: str
    is_computed: bool = False
    line: int


class EnumAnalysis(ApiModel):
    symbol: SymbolRef
    is_const: bool = False
    is_declare: bool = False
    members: List[EnumMemberEntry] = Field(default_factory=list)


class AliasEntry(ApiModel):
    name: str
    file_path: str
    line: int
    kind: AliasKind
    original_name: str


class AliasHop(ApiModel):
    name: str
    file_path: str
    line: int


class AliasChain(ApiModel):
    hops: List[AliasHop] = Field(default_factory=list)


class AliasGraph(ApiModel):
    canonical: SymbolRef
    aliases: List[AliasEntry] = Field(default_factory=list)
    chains: List[AliasChain] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Trace orchestrator
# ---------------------------------------------------------------------------


class DefinitionInfo(ApiModel):
    file: str
    line: int
    column: int
    kind: Optional[str] = None
    signature: Optional[str] = None
    unresolved: Optional[bool] = None


class ImpactDependent(ApiModel):
    symbol: str
    kind: str
    file: str
    line: int


class ImpactSummary(ApiModel):
    direct_files: int = 0
    transitive_files: int = 0
    total_symbols_affected: int = 0
    risk_level: RiskLevel = RiskLevel.LOW


class ImpactInfo(ApiModel):
    direct_dependents: List[ImpactDependent] = Field(default_factory=list)
    transitive_dependents: List[ImpactDependent] = Field(default_factory=list)
    impact_summary: ImpactSummary = Field(default_factory=ImpactSummary)


class TraceSummary(ApiModel):
    total_references: int = 0
    total_files: int = 0
    max_call_depth: int = 0


class TraceSymbolResult(ApiModel):
    symbol: str
    definition: Optional[DefinitionInfo] = None
    references: List[ReferenceInfo] = Field(default_factory=list)
    reference_files: List[ReferenceFileSummary] = Field(default_factory=list)
    re_exports: List[ReExportInfo] = Field(default_factory=list)
    calls: Optional[CallHierarchy] = None
    type_flows: Optional[TypeFlow] = None
    hierarchy: Optional[TypeHierarchy] = None
    impact: Optional[ImpactInfo] = None
    summary: TraceSummary = Field(default_factory=TraceSummary)
    diagnostics: Optional[List[str]] = None
    partial: Optional[bool] = None
    partial_reason: Optional[PartialReason] = None
    not_found_reason: Optional[NotFoundReason] = None
    error_message: Optional[str] = None
    elapsed_ms: Optional[int] = None
    source_file_count: Optional[int] = None
    effective_timeout: Optional[int] = None
    resolved_root_dir: Optional[str] = None


# ---------------------------------------------------------------------------
# Dead code
# ---------------------------------------------------------------------------


class DeadCodeItem(ApiModel):
    name: str
    kind: str
    file: str
    line: int
    exported: bool
    confidence: Confidence
    reason: str


class DeadCodeSummary(ApiModel):
    total_scanned: int = 0
    total_dead: int = 0
    scan_duration_ms: int = 0
    by_kind: Optional[Dict[str, int]] = None


class DeadCodeResult(ApiModel):
    dead_code: List[DeadCodeItem] = Field(default_factory=list)
    summary: DeadCodeSummary = Field(default_factory=DeadCodeSummary)
    diagnostics: Optional[List[str]] = None
    partial: Optional[bool] = None
    partial_reason: Optional[PartialReason] = None
    error_message: Optional[str] = None
    resolved_root_dir: Optional[str] = None


AnalysisResult = Union[
    CallHierarchy,
    TypeFlow,
    References,
    TypeHierarchy,
    TypeGuardAnalysis,
    CallbackAnalysis,
    UnicodeIdentifierAnalysis,
    EnumAnalysis,
    MembersResult,
    AliasGraph,
]
