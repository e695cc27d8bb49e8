from __future__ import annotations
import json
from typing import Any, Dict, Mapping

PERSONAL_FIELDS = ("name", "email", "phone", "linkedin", "portfolio", "github")

_TAILORED_RESUME = """\
You are an expert resume writer. I will provide you with my personal contact information, a master profile containing all of my professional history, and a target job description.

Your task is to create a tailored, professional one-page resume. Follow this structure precisely:
1.  **Header:** Start with my name, followed by my contact details (email, phone, LinkedIn, portfolio, GitHub) in a clean, single line or two.
2.  **Professional Summary:** Write a compelling, tailored professional summary (2-4 sentences) that highlights my key qualifications for this specific role, based on my master profile and the job description.
3.  **Content Sections:** From the master profile, select only the most relevant information that aligns with the job description. Create sections like "Professional Experience", "Skills", "Projects", "Education", etc., as needed.
4.  **Formatting:** Rephrase bullet points to use action verbs and highlight achievements that match the company's needs. The output must be clean, well-formatted resume text in Markdown format.

Do not include any preamble or explanation, just the resume content itself.

**Personal Information:**
{personal}

**Master Profile:**
```json
{profile}
```

**Target Job Description:**
---
{job}
---
"""


def _personal_lines(info: Mapping[str, Any]) -> str:
    lines = []
    for key in PERSONAL_FIELDS:
        label = "LinkedIn" if key == "linkedin" else "GitHub" if key == "github" else key.capitalize()
        value = info.get(key)
        lines.append(f"{label}: {'' if value is None else value}")
    return "\n".join(lines)


def build_tailored_resume_prompt(profile: Mapping[str, Any], job_description: str) -> str:
    """
    Personal info is pulled out and listed on its own; the rest of the master
    profile goes in as indented JSON. The caller's profile is not modified.
    """
    rest: Dict[str, Any] = {k: v for k, v in profile.items() if k != "personal_info"}
    personal = profile.get("personal_info") or {}
    return _TAILORED_RESUME.format(
        personal=_personal_lines(personal),
        profile=json.dumps(rest, indent=2, ensure_ascii=False),
        job=job_description.strip(),
    )
