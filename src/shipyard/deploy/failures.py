"""Heuristic classification of deploy errors.

Categories come from keyword matching against raw tool output. The result is
best-effort triage for the summary report and never drives control flow.
"""

from __future__ import annotations

from shipyard.models.deployment import FailureCategory, StageConfig

# Checked in order; the first matching row wins. A row matches when any of
# its keywords occurs and, if present, any of its qualifiers occurs too.
CATEGORY_RULES: tuple[tuple[FailureCategory, tuple[str, ...], tuple[str, ...]], ...] = (
    (
        FailureCategory.CREDENTIALS,
        ("credential", "unauthorized", "access denied", "invalid credentials"),
        (),
    ),
    (FailureCategory.REGION, ("region",), ("invalid", "not found")),
    (FailureCategory.TOOLING, ("serverless", "framework"), ()),
    (
        FailureCategory.PERMISSIONS,
        ("permission", "forbidden", "not authorized"),
        (),
    ),
    (FailureCategory.INFRASTRUCTURE_STACK, ("cloudformation", "stack"), ()),
    (FailureCategory.COMPUTE_FUNCTION, ("lambda",), ()),
    (FailureCategory.API_GATEWAY, ("api gateway", "apigateway"), ()),
)


def categorize_error(error_message: str | None) -> FailureCategory:
    """Classify a deploy error message into a FailureCategory."""
    if not error_message:
        return FailureCategory.UNKNOWN

    text = error_message.lower()
    for category, keywords, qualifiers in CATEGORY_RULES:
        if not any(keyword in text for keyword in keywords):
            continue
        if qualifiers and not any(q in text for q in qualifiers):
            continue
        return category
    return FailureCategory.UNKNOWN


_CREDENTIAL_MARKERS = (
    "unable to locate credentials",
    "credentialserror",
    "no credentials",
    "invalid credentials",
    "the security token included in the request is invalid",
)
_TOOL_AUTH_MARKERS = (
    "unauthorized",
    "serverless_access_key",
    "serverless login",
    "authentication failed",
)
_PERMISSION_MARKERS = (
    "access denied",
    "forbidden",
    "not authorized",
    "insufficient privileges",
)
_ENV_VAR_MARKERS = ("environment variable", "env var")


def enhance_error_message(error_message: str, stage: StageConfig | None = None) -> str:
    """Append troubleshooting guidance to a deploy error message.

    Args:
        error_message: Raw error text from the deployment tool
        stage: Stage policy, used to tailor credential guidance

    Returns:
        The original message, followed by guidance when a known issue matches
    """
    text = error_message.lower()

    if any(marker in text for marker in _CREDENTIAL_MARKERS):
        lines = ["Credential issue detected:"]
        if stage is not None and not stage.allow_profile_credentials:
            lines += [
                "  - This stage requires AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY",
                "  - AWS_PROFILE is not accepted for this stage",
            ]
        else:
            lines += [
                "  - Set AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY together",
                "  - Or use AWS_PROFILE with configured AWS CLI credentials",
            ]
        lines += [
            "  - Verify the credentials are not expired",
            "  - Verify they allow Lambda, API Gateway and CloudFormation",
        ]
    elif "region" in text and ("invalid" in text or "not found" in text):
        lines = [
            "Region issue detected:",
            "  - Set AWS_REGION or AWS_DEFAULT_REGION",
            "  - Verify the region exists and is enabled for the account",
        ]
    elif any(marker in text for marker in _TOOL_AUTH_MARKERS):
        lines = [
            "Deployment tool authentication issue:",
            "  - Ensure SERVERLESS_ACCESS_KEY is set correctly",
            "  - Access keys are issued at https://app.serverless.com/",
        ]
    elif any(marker in text for marker in _PERMISSION_MARKERS):
        lines = [
            "Permission issue detected:",
            "  - Required permissions: Lambda, API Gateway, CloudFormation, IAM",
            "  - Check whether MFA or an assumed role is required for this stage",
        ]
    elif any(marker in text for marker in _ENV_VAR_MARKERS):
        lines = [
            "Environment variable issue:",
            "  - Check that all required variables are set",
            "  - Variable names are case-sensitive",
        ]
    else:
        return error_message

    return f"{error_message}\n\n" + "\n".join(lines)
