"""
Deterministic artifacts used when the LLM answers with something that
cannot be parsed or does not fit the artifact model.

Each builder takes the same context the generator got and returns a
validated artifact. The interview-prep and project-plan contents match
the templates the web app has always served on a parse failure.
"""
from typing import Any, Callable, Dict

from career_pilot.agents.artifacts import ARTIFACT_MODELS, Artifact


def _career_analysis(ctx: Dict[str, Any]) -> Dict[str, Any]:
    goal = ctx.get("goal") or "Senior Software Engineer"
    return {
        "roles": [
            {"role": "Junior Software Developer", "term": "short", "domain": "Tech", "match_score": 70},
            {"role": "Software Engineer", "term": "mid", "domain": "Tech", "match_score": 60},
            {"role": goal, "term": "long", "domain": "Tech", "match_score": 50},
        ],
        "career_summary": f"Build core engineering experience first, then grow toward {goal}.",
        "total_timeline": "Estimated 3-5 years to reach ultimate goal",
    }


def _skill_validation(ctx: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "role": ctx.get("role") or "Software Developer",
        "domain": ctx.get("domain"),
        "readiness_score": 0,
        "matched_skills": {},
        "missing_skills": [],
        "recommendation": "Automatic assessment was unavailable. Re-run skill validation for a detailed report.",
    }


def _learning_plan(ctx: Dict[str, Any]) -> Dict[str, Any]:
    skill = ctx.get("skill") or "Programming"
    return {
        "skill_name": skill,
        "career_title": ctx.get("career_title"),
        "learning_steps": [
            {"title": f"Learn the fundamentals of {skill}", "duration": "1 week"},
            {"title": f"Follow a structured {skill} course", "duration": "2 weeks"},
            {"title": f"Practice {skill} with exercises", "duration": "1 week"},
            {"title": f"Build a small project using {skill}", "duration": "1 week"},
        ],
        "recommended_courses": [],
        "certification_links": [],
    }


def _project_ideas(ctx: Dict[str, Any]) -> Dict[str, Any]:
    role = ctx.get("role") or "Software Developer"
    skill = ctx.get("skill") or "Programming"
    return {
        "ideas": [
            {
                "title": f"{skill} Portfolio Dashboard",
                "description": f"A dashboard that showcases {skill} work for a {role} portfolio.",
                "problem": "Recruiters need a quick view of a candidate's practical work.",
            },
            {
                "title": f"{skill} Task Tracker",
                "description": "A small full-stack app to plan and track personal tasks.",
                "problem": "Keeping track of learning goals and deadlines.",
            },
            {
                "title": f"{role} Knowledge Base",
                "description": "A searchable notes app for interview and study material.",
                "problem": "Study material is scattered across many places.",
            },
        ]
    }


def _project_plan(ctx: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "timeline": [
            {"week": 1, "milestone": "Project Setup", "tasks": ["Setup development environment", "Create project structure"]},
            {"week": 2, "milestone": "Core Development", "tasks": ["Implement core features", "Create database schema"]},
            {"week": 3, "milestone": "UI Development", "tasks": ["Build user interface", "Add styling"]},
            {"week": 4, "milestone": "Testing & Launch", "tasks": ["Test all features", "Deploy project"]},
        ],
        "kanban_board": {
            "todo": ["Setup project", "Design database", "Create API", "Build UI"],
            "in_progress": [],
            "done": [],
        },
        "tasks": [
            {"title": "Project Setup", "description": "Initialize the project", "priority": "high", "estimated_hours": 2},
            {"title": "Database Design", "description": "Design the database schema", "priority": "high", "estimated_hours": 4},
            {"title": "API Development", "description": "Build the backend API", "priority": "high", "estimated_hours": 8},
            {"title": "Frontend Development", "description": "Build the user interface", "priority": "medium", "estimated_hours": 12},
        ],
        "resources": [
            {"type": "software", "name": "VS Code", "description": "Code editor", "resource": "IDE", "unit_cost": 0},
            {"type": "software", "name": "Git", "description": "Version control", "resource": "VCS", "unit_cost": 0},
        ],
    }


def _project_build(ctx: Dict[str, Any]) -> Dict[str, Any]:
    phases = [
        ("Project Setup & Planning", "Initialize project structure and plan architecture", "setup"),
        ("Core Features", "Implement the main functionality", "code"),
        ("Testing & Polish", "Test every feature and fix issues", "test"),
        ("Deployment", "Ship the project and document it", "deploy"),
    ]
    return {
        "phases": [
            {
                "phase_number": n,
                "title": title,
                "description": description,
                "tasks": [{
                    "id": f"{n}-1",
                    "title": title,
                    "description": description,
                    "type": kind,
                    "estimated_time": "1 day",
                    "is_completed": False,
                }],
                "is_completed": False,
            }
            for n, (title, description, kind) in enumerate(phases, start=1)
        ]
    }


def _resume_upgrade(ctx: Dict[str, Any]) -> Dict[str, Any]:
    target_role = ctx.get("target_role") or "Software Developer"
    resume = ctx.get("resume") or {}
    skills = resume.get("skills") or {}
    if isinstance(skills, list):
        skills = {"technical": skills}
    return {
        "header": {"name": resume.get("name") or "", "title": target_role},
        "summary": f"Motivated professional targeting a {target_role} position.",
        "skills": {k: list(v) for k, v in skills.items() if isinstance(v, list)},
        "work_experience": resume.get("experience") or [],
        "projects": resume.get("projects") or [],
        "education": resume.get("education") or [],
        "certifications": resume.get("certifications") or [],
    }


def _job_matching(ctx: Dict[str, Any]) -> Dict[str, Any]:
    # no invented listings
    return {"jobs": []}


def _interview_prep(ctx: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "job_analysis": {
            "key_requirements": ["Technical skills", "Communication", "Problem-solving"],
            "company_culture_hints": ["Innovation-focused", "Collaborative environment"],
            "interview_format_prediction": "Technical + Behavioral rounds",
            "difficulty_level": "medium",
        },
        "interview_questions": {
            "technical": [
                {"question": "Explain your approach to solving complex problems",
                 "sample_answer": "I break down problems into smaller parts...", "tips": "Use specific examples"},
                {"question": "Describe a challenging project you worked on",
                 "sample_answer": "In my previous role, I led a project that...", "tips": "Focus on your contributions"},
            ],
            "behavioral": [
                {"question": "Tell me about a time you faced a conflict at work",
                 "sample_answer": "I once had a disagreement with a colleague...", "tips": "Use STAR method"},
                {"question": "How do you handle tight deadlines?",
                 "sample_answer": "I prioritize tasks and communicate...", "tips": "Show time management"},
            ],
            "company_specific": [
                {"question": "Why do you want to work here?",
                 "sample_answer": "I admire your company's commitment to...", "tips": "Research the company"},
            ],
        },
        "resume_alignment": {
            "strengths": ["Relevant experience", "Technical skills"],
            "gaps": ["Specific technology experience"],
            "talking_points": ["Highlight project achievements", "Emphasize learning ability"],
        },
        "preparation_checklist": [
            {"task": "Research company background", "priority": "high", "completed": False},
            {"task": "Review job description", "priority": "high", "completed": False},
            {"task": "Practice technical questions", "priority": "high", "completed": False},
            {"task": "Prepare questions to ask", "priority": "medium", "completed": False},
        ],
        "readiness_score": 65,
    }


FALLBACKS: Dict[str, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    "career_analysis": _career_analysis,
    "skill_validation": _skill_validation,
    "learning_plan": _learning_plan,
    "project_ideas": _project_ideas,
    "project_plan": _project_plan,
    "project_build": _project_build,
    "resume_upgrade": _resume_upgrade,
    "job_matching": _job_matching,
    "interview_prep": _interview_prep,
}


def fallback_artifact(action: str, context: Dict[str, Any]) -> Artifact:
    return ARTIFACT_MODELS[action].model_validate(FALLBACKS[action](context or {}))
