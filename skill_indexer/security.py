"""
Security scanner for skill content
Regex heuristics over the instruction text and bundled scripts
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

SEVERITY_PENALTY = {
    'critical': 30,
    'high': 20,
    'medium': 10,
    'low': 5,
}

# (pattern, severity, type, message)
DANGEROUS_SHELL_PATTERNS = [
    (r'rm\s+-rf\s+[/~]', 'critical', 'destructive_command',
     'Recursive force delete from root or home directory'),
    (r'rm\s+-rf\s+\$\{?\w+\}?/?\s*$', 'high', 'destructive_command',
     'Recursive delete with variable path'),
    (r'curl.*\|\s*(ba)?sh', 'critical', 'remote_execution', 'Piping curl output directly to shell'),
    (r'wget.*\|\s*(ba)?sh', 'critical', 'remote_execution', 'Piping wget output directly to shell'),
    (r'wget.*&&.*chmod.*\+x', 'high', 'download_execute', 'Download and make executable pattern'),
    (r'eval\s*\(', 'high', 'eval_usage', 'Use of eval() function'),
    (r'eval\s+["\'`$]', 'high', 'eval_usage', 'Shell eval with dynamic content'),
    (r'exec\s*\(', 'medium', 'exec_usage', 'Use of exec() function'),
    (r'subprocess\.call.*shell\s*=\s*True', 'medium', 'shell_injection', 'Python subprocess with shell=True'),
    (r'os\.system\s*\(', 'medium', 'shell_injection', 'Python os.system call'),
    (r'child_process\.exec\(', 'medium', 'shell_injection', 'Node.js child_process.exec'),
]

PROMPT_INJECTION_PATTERNS = [
    (r'ignore\s+(all\s+)?previous\s+instructions', 'high', 'prompt_injection',
     'Prompt injection: ignore previous instructions'),
    (r'disregard\s+(all\s+)?prior\s+instructions', 'high', 'prompt_injection',
     'Prompt injection: disregard prior instructions'),
    (r'you\s+are\s+now\s+in\s+.*mode', 'medium', 'prompt_injection',
     'Prompt injection: mode switching attempt'),
    (r'system\s*:\s*you\s+are', 'high', 'prompt_injection', 'Prompt injection: fake system message'),
    (r'\[SYSTEM\]', 'medium', 'prompt_injection', 'Prompt injection: system tag in content'),
    (r'forget\s+(everything|all)\s+(you\s+)?know', 'high', 'prompt_injection',
     'Prompt injection: memory wipe attempt'),
]

DATA_EXFILTRATION_PATTERNS = [
    (r'send.*to.*external', 'high', 'data_exfiltration', 'Potential data exfiltration instruction'),
    (r'upload.*credentials', 'critical', 'data_exfiltration', 'Instruction to upload credentials'),
    (r'transmit.*api[_-]?key', 'critical', 'data_exfiltration', 'Instruction to transmit API keys'),
    (r'exfiltrate', 'critical', 'data_exfiltration', 'Explicit exfiltration instruction'),
    (r'base64.*encode.*secret', 'high', 'data_exfiltration', 'Encoding secrets pattern'),
]

CREDENTIAL_PATTERNS = [
    (r'password\s*[=:]\s*["\'][^"\']+["\']', 'critical', 'credential_exposure', 'Hardcoded password detected'),
    (r'api[_-]?key\s*[=:]\s*["\'][a-zA-Z0-9]{20,}["\']', 'critical', 'credential_exposure',
     'Hardcoded API key detected'),
    (r'secret\s*[=:]\s*["\'][^"\']{10,}["\']', 'high', 'credential_exposure', 'Hardcoded secret detected'),
    (r'private[_-]?key\s*[=:]', 'critical', 'credential_exposure', 'Private key assignment detected'),
]

# Patterns matched case-insensitively
_CASE_INSENSITIVE = {'prompt_injection', 'data_exfiltration', 'credential_exposure'}

RECOMMENDATIONS = {
    'remote_execution': 'Download and review remote scripts before executing them.',
    'prompt_injection': 'Remove prompt injection patterns; they cause unpredictable agent behavior.',
    'data_exfiltration': 'Never instruct an agent to send sensitive data externally.',
    'credential_exposure': 'Remove hardcoded credentials and read them from the environment.',
    'eval_usage': 'Avoid eval() and exec() on dynamic input.',
    'exec_usage': 'Avoid eval() and exec() on dynamic input.',
    'shell_injection': 'Use parameterized commands instead of shell string interpolation.',
    'destructive_command': 'Guard destructive commands with explicit confirmation.',
}


@dataclass
class SecurityReport:
    score: int
    status: str  # pass | warning | fail
    issues: List[Dict] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    scanned_at: Optional[str] = None


def _line_number(content: str, index: int) -> int:
    return content.count('\n', 0, index) + 1


def _scan(content: str, checks: Iterable[Tuple], location: Optional[str] = None) -> List[Dict]:
    issues = []
    for pattern, severity, issue_type, message in checks:
        flags = re.MULTILINE | (re.IGNORECASE if issue_type in _CASE_INSENSITIVE else 0)
        match = re.search(pattern, content, flags)
        if not match:
            continue
        issue = {
            'severity': severity,
            'type': issue_type,
            'message': message,
            'line': _line_number(content, match.start()),
        }
        if location:
            issue['location'] = location
        issues.append(issue)
    return issues


def calculate_score(issues: List[Dict]) -> int:
    score = 100 - sum(SEVERITY_PENALTY.get(i['severity'], 0) for i in issues)
    return max(0, min(100, score))


def calculate_status(issues: List[Dict]) -> str:
    """fail on any critical issue, warning on any high one, else pass"""
    severities = {i['severity'] for i in issues}
    if 'critical' in severities:
        return 'fail'
    if 'high' in severities:
        return 'warning'
    return 'pass'


def scan_security(content: str, scripts: Optional[List[Dict]] = None) -> SecurityReport:
    """
    Scan instruction text and scripts.

    scripts is a list of {'name': ..., 'content': ...} dicts.
    """
    content = content or ''
    issues = []
    issues += _scan(content, PROMPT_INJECTION_PATTERNS)
    issues += _scan(content, DATA_EXFILTRATION_PATTERNS)
    issues += _scan(content, CREDENTIAL_PATTERNS)

    for script in scripts or []:
        script_content = script.get('content') or ''
        issues += _scan(script_content, DANGEROUS_SHELL_PATTERNS, script.get('name'))
        issues += _scan(script_content, CREDENTIAL_PATTERNS, script.get('name'))

    recommendations = []
    for issue_type in dict.fromkeys(i['type'] for i in issues):
        advice = RECOMMENDATIONS.get(issue_type)
        if advice and advice not in recommendations:
            recommendations.append(advice)

    return SecurityReport(
        score=calculate_score(issues),
        status=calculate_status(issues),
        issues=issues,
        recommendations=recommendations,
        scanned_at=datetime.now(timezone.utc).isoformat(),
    )


def generate_report(report: SecurityReport) -> str:
    """Human-readable summary"""
    if not report.issues:
        return f"No security issues found (score {report.score})"

    lines = [f"{report.status.upper()} (score {report.score}), {len(report.issues)} issue(s):"]
    for issue in report.issues:
        where = f" in {issue['location']}" if issue.get('location') else ''
        lines.append(f"  - [{issue['severity']}] {issue['type']}{where} line {issue['line']}: {issue['message']}")
    return '\n'.join(lines)
