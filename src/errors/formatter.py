"""Application error type and user-facing formatting.

CRMForgeError carries a registry code, a rendered message and the
remediation text, so the API, CLI and MCP tools report failures the same
way.
"""

from dataclasses import dataclass, field

from src.errors.registry import get_error


@dataclass(eq=False)
class CRMForgeError(Exception):
    """Application error with code, message, and context.

    Attributes:
        code: Error code in E-XXXX format.
        message: Human-readable error message.
        remediation: Action the user should take to resolve.
        is_retryable: Whether the operation can be retried without user action.
        details: Additional context dictionary.
    """

    code: str
    message: str
    remediation: str
    is_retryable: bool = False
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"

    @classmethod
    def from_code(cls, code: str, **kwargs: object) -> "CRMForgeError":
        """Create an error from a registry code.

        Args:
            code: Error code in E-XXXX format.
            **kwargs: Values for the message template. A ``details`` dict is
                attached as context instead.

        Returns:
            CRMForgeError with the rendered message.
        """
        details = kwargs.pop("details", {})
        if not isinstance(details, dict):
            details = {}

        error_def = get_error(code)
        if not error_def:
            return cls(
                code=code,
                message=f"Unknown error: {code}",
                remediation="Inspect the server logs.",
                details=details,
            )

        try:
            message = error_def.message_template.format(**kwargs)
        except KeyError:
            # Keep template if some placeholders are missing
            message = error_def.message_template

        return cls(
            code=error_def.code,
            message=message,
            remediation=error_def.remediation,
            is_retryable=error_def.is_retryable,
            details=details,
        )

    def to_dict(self) -> dict:
        """Serialize for JSON error responses."""
        return {
            "errorCode": self.code,
            "message": self.message,
            "remediation": self.remediation,
            "details": self.details or None,
        }


def format_error(error: CRMForgeError, include_remediation: bool = True) -> str:
    """Format an error for terminal display.

    Args:
        error: The error to format.
        include_remediation: Whether to include the remediation line.

    Returns:
        Multi-line string.
    """
    lines = [f"{error.code}: {error.message}"]
    for key, value in error.details.items():
        if isinstance(value, list):
            lines.append(f"  {key}:")
            lines.extend(f"    - {item}" for item in value)
        else:
            lines.append(f"  {key}: {value}")
    if include_remediation:
        lines.append(f"  Action: {error.remediation}")
    return "\n".join(lines)
