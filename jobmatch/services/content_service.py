"""
Résumé content generation biased toward matched job keywords
"""
import re
from datetime import date, datetime
from typing import List, Optional, Tuple

from jobmatch.utils.logger import get_logger
from jobmatch.models.entities import (
    JobPosting,
    KeywordPriority,
    MatchResult,
    UserProfile,
    WorkExperienceEntry,
    OptimizedExperience,
    GeneratedResumeContent,
)
from jobmatch.services.scoring_service import round_half_up

logger = get_logger(__name__)

TOP_EXPERIENCES = 3
BULLETS_PER_EXPERIENCE = 4
MAX_BULLET_LENGTH_FOR_KEYWORD = 120
MAX_CORE_COMPETENCIES = 12
SUMMARY_SKILLS = 3

TITLE_HIT_WEIGHT = 2
BODY_HIT_WEIGHT = 1

PLACEHOLDER_NAME = "Your Name"
PLACEHOLDER_EMAIL = "your.email@example.com"
PLACEHOLDER_PHONE = "(555) 123-4567"
PLACEHOLDER_LOCATION = "Your City, State"
PLACEHOLDER_LINKEDIN = "linkedin.com/in/yourprofile"

_BULLET_PREFIX_RE = re.compile(r"^[•\-*]\s*")
_DATE_FORMATS = ("%Y-%m-%d", "%Y-%m", "%Y/%m/%d", "%m/%Y", "%Y")


def parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    text = value.strip()
    # Drop any time component of ISO timestamps
    text = text.split("T")[0]
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def format_month(value: Optional[str]) -> str:
    """Render a stored date as 'Jan 2020', passing through unparseable text"""
    parsed = parse_date(value)
    if parsed is None:
        return value or ""
    return parsed.strftime("%b %Y")


def format_year(value: Optional[str]) -> str:
    parsed = parse_date(value)
    if parsed is None:
        return value or ""
    return str(parsed.year)


def format_duration(exp: WorkExperienceEntry) -> str:
    if not exp.start_date and not exp.end_date and not exp.is_current:
        return ""
    end = "Present" if exp.is_current else format_month(exp.end_date)
    return f"{format_month(exp.start_date)} - {end}"


def clean_bullet(line: str) -> str:
    return _BULLET_PREFIX_RE.sub("", line.strip())


def years_of_experience(profile: UserProfile, today: Optional[date] = None) -> int:
    """Total whole years across dated work entries; at least 1 when any entry exists"""
    if not profile.work_experience:
        return 0

    today = today or date.today()
    total_months = 0
    for exp in profile.work_experience:
        start = parse_date(exp.start_date)
        if start is None:
            continue
        end = today if exp.is_current else (parse_date(exp.end_date) or today)
        months = (end.year - start.year) * 12 + (end.month - start.month)
        total_months += max(months, 0)

    return max(1, total_months // 12)


class ContentGenerator:
    """
    Builds résumé markup and its structured breakdown from a match result.

    Selects the most relevant work entries, trims their bullets, and appends
    at most one relevant keyword to short bullets that lack it. Absent profile
    fields fall back to placeholder text; generation does not raise.
    """

    def __init__(self, today: Optional[date] = None):
        self.today = today

    def score_experience(self, exp: WorkExperienceEntry, matched: List[str]) -> Tuple[int, List[str]]:
        """
        Relevance of one entry against the matched keywords.

        Title hits count double. The score is normalized so an entry whose
        title mentions every matched keyword scores 100.
        """
        if not matched:
            return 0, []

        title = (exp.position or "").lower()
        body = f"{exp.company or ''} {exp.description or ''}".lower()

        raw = 0
        hits = []
        for term in matched:
            in_title = term in title
            in_body = term in body
            if in_title:
                raw += TITLE_HIT_WEIGHT
            elif in_body:
                raw += BODY_HIT_WEIGHT
            if in_title or in_body:
                hits.append(term)

        score = round_half_up(raw / (TITLE_HIT_WEIGHT * len(matched)) * 100)
        return score, hits

    def optimize_bullets(self, description: str, relevant_keywords: List[str]) -> Tuple[List[str], List[str]]:
        """First bullets of a description, each with at most one keyword appended"""
        bullets = [clean_bullet(line) for line in (description or "").split("\n") if line.strip()]
        bullets = [b for b in bullets if b][:BULLETS_PER_EXPERIENCE]

        optimized = []
        integrated = []
        for bullet in bullets:
            lowered = bullet.lower()
            absent = [kw for kw in relevant_keywords if kw not in lowered]
            if absent and len(bullet) < MAX_BULLET_LENGTH_FOR_KEYWORD:
                bullet = re.sub(r"\.$", "", bullet) + f" utilizing {absent[0]}."
                if absent[0] not in integrated:
                    integrated.append(absent[0])
            optimized.append(bullet)

        return optimized, integrated

    def select_experiences(self, match: MatchResult, profile: UserProfile) -> List[OptimizedExperience]:
        scored = []
        for exp in profile.work_experience:
            score, hits = self.score_experience(exp, match.matched_skills)
            scored.append((score, hits, exp))

        # sorted() is stable so ties keep profile order
        ranked = sorted(scored, key=lambda item: item[0], reverse=True)[:TOP_EXPERIENCES]

        experiences = []
        for score, hits, exp in ranked:
            bullets, integrated = self.optimize_bullets(exp.description, hits)
            experiences.append(OptimizedExperience(
                position=exp.position or "",
                company=exp.company or "",
                duration=format_duration(exp),
                bullets=bullets,
                keywords_integrated=integrated,
                relevance_score=score,
            ))
        return experiences

    def build_summary(self, match: MatchResult, profile: UserProfile, posting: JobPosting) -> str:
        existing = profile.personal_info.professional_summary
        top_matched = match.matched_skills[:SUMMARY_SKILLS]

        if existing and existing.strip():
            lowered = existing.lower()
            if not top_matched or any(skill in lowered for skill in top_matched):
                return existing
            return f"{re.sub(r'[.]$', '', existing.strip())} Expertise in {', '.join(top_matched)}."

        years = years_of_experience(profile, self.today)
        user_skills = [s.strip() for s in profile.skills if s and s.strip()][:3]
        top_skills = []
        for skill in match.matched_skills[:2] + user_skills:
            if skill.lower() not in {s.lower() for s in top_skills}:
                top_skills.append(skill)
        top_skills = top_skills[:SUMMARY_SKILLS]
        skills_text = ", ".join(top_skills) if top_skills else "various technologies"
        role = posting.title or "professional"

        if years >= 10:
            return (
                f"Senior {role} with {years}+ years of progressive experience in {skills_text}. "
                "Proven leadership in driving strategic initiatives and delivering exceptional results "
                "across complex projects."
            )
        if years >= 5:
            return (
                f"Experienced {role} with {years} years of expertise in {skills_text}. "
                "Strong track record of successful project delivery and team collaboration with "
                f"{match.match_score}% job requirements alignment."
            )
        if years >= 2:
            return (
                f"Results-driven {role} with {years} years of hands-on experience in {skills_text}. "
                "Demonstrated ability to adapt and excel in dynamic environments."
            )
        return (
            f"Motivated {role} with strong foundation in {skills_text}. "
            "Eager to leverage technical skills and fresh perspective to contribute to "
            "organizational success."
        )

    def core_competencies(self, match: MatchResult) -> List[str]:
        priority_terms = [
            k.term for k in match.keywords
            if k.priority in (KeywordPriority.CRITICAL, KeywordPriority.HIGH)
        ]
        return list(dict.fromkeys(match.matched_skills[:4] + priority_terms))[:MAX_CORE_COMPETENCIES]

    def order_skills(self, match: MatchResult, profile: UserProfile) -> List[str]:
        """User skills with keyword-matching ones first, original order otherwise"""
        skills = list(dict.fromkeys(s.strip() for s in profile.skills if s and s.strip()))
        matched = match.matched_skills

        def is_matched(skill: str) -> bool:
            lowered = skill.lower()
            return any(term in lowered or lowered in term for term in matched)

        return sorted(skills, key=lambda s: 0 if is_matched(s) else 1)

    def render(
        self,
        profile: UserProfile,
        summary: str,
        competencies: List[str],
        experiences: List[OptimizedExperience],
        skills: List[str]
    ) -> str:
        info = profile.personal_info
        lines = [
            f"# {info.name or PLACEHOLDER_NAME}",
            "",
            info.email or PLACEHOLDER_EMAIL,
            info.phone or PLACEHOLDER_PHONE,
            info.location or PLACEHOLDER_LOCATION,
            info.linkedin or PLACEHOLDER_LINKEDIN,
            "",
            "## Professional Summary",
            "",
            summary,
            "",
        ]

        if competencies:
            lines += ["## Core Competencies", "", " | ".join(competencies), ""]

        if experiences:
            lines += ["## Professional Experience", ""]
            for exp in experiences:
                lines.append(f"### {exp.position}")
                lines.append(f"**{exp.company}**")
                if exp.duration:
                    lines.append(exp.duration)
                lines.append("")
                lines += [f"- {bullet}" for bullet in exp.bullets]
                lines.append("")

        if profile.education:
            lines += ["## Education", ""]
            for edu in profile.education:
                lines.append(f"### {edu.degree}")
                lines.append(f"**{edu.institution}**")
                if edu.field_of_study:
                    lines.append(edu.field_of_study)
                if edu.start_date:
                    lines.append(format_year(edu.start_date))
                if edu.gpa:
                    lines.append(f"GPA: {edu.gpa}")
                lines.append("")

        if skills:
            lines += ["## Skills", ""]
            lines += [f"- {skill}" for skill in skills]
            lines.append("")

        if profile.certifications:
            lines += ["## Certifications", ""]
            for cert in profile.certifications:
                lines.append(f"### {cert.name}")
                lines.append(f"**{cert.issuer}**")
                if cert.issue_date:
                    lines.append(format_year(cert.issue_date))
                lines.append("")

        return "\n".join(lines)

    def generate(self, match: MatchResult, profile: UserProfile, posting: JobPosting) -> GeneratedResumeContent:
        experiences = self.select_experiences(match, profile)
        summary = self.build_summary(match, profile, posting)
        competencies = self.core_competencies(match)
        skills = self.order_skills(match, profile)

        integrated = []
        for exp in experiences:
            for keyword in exp.keywords_integrated:
                if keyword not in integrated:
                    integrated.append(keyword)

        markup = self.render(profile, summary, competencies, experiences, skills)

        logger.debug(
            "resume_content_generated",
            experiences=len(experiences),
            keywords_integrated=len(integrated),
            markup_length=len(markup)
        )

        return GeneratedResumeContent(
            markup=markup,
            summary=summary,
            core_competencies=competencies,
            experiences=experiences,
            skills=skills,
            keywords_integrated=integrated,
        )


# Global service instance
content_generator = ContentGenerator()
