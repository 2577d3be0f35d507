"""Built-in templates, categories and workflows seeded by ``load_defaults``."""

from typing import Any, Dict, List

from notewright.templates.models import NoteTemplate, TemplateCategory
from notewright.workflows.models import NoteWorkflow

MOODS = ["Great", "Good", "Okay", "Not Great", "Terrible"]


def _var(name: str, label: str, description: str, type: str = "text", required: bool = False, **extra) -> Dict[str, Any]:
    return {
        "name": name,
        "type": type,
        "label": label,
        "description": description,
        "required": required,
        **extra,
    }


def _system_metadata(rating: float) -> Dict[str, Any]:
    return {"rating": rating, "isPublic": True, "author": "system", "version": "1.0.0"}


MEETING_NOTES = """# {{meetingTitle}}

**Date:** {{meetingDate}}
**Time:** {{meetingTime}}
**Location:** {{meetingLocation}}
**Attendees:** {{attendees}}

## Agenda
{{agenda}}

## Discussion Points
{{discussionPoints}}

## Action Items
{{actionItems}}

## Next Steps
{{nextSteps}}

## Notes
{{additionalNotes}}"""

PROJECT_PLAN = """# {{projectName}} - Project Plan

**Project Manager:** {{projectManager}}
**Start Date:** {{startDate}}
**End Date:** {{endDate}}
**Status:** {{status}}

## Project Overview
{{projectOverview}}

## Objectives
{{objectives}}

## Scope
{{scope}}

## Timeline
{{timeline}}

## Resources
{{resources}}

## Risks and Mitigation
{{risks}}

## Success Criteria
{{successCriteria}}

## Stakeholders
{{stakeholders}}"""

DAILY_JOURNAL = """# Daily Journal - {{date}}

## Morning Reflection
**Mood:** {{morningMood}}
**Energy Level:** {{energyLevel}}

{{morningThoughts}}

## Goals for Today
{{todaysGoals}}

## Accomplishments
{{accomplishments}}

## Challenges
{{challenges}}

## Lessons Learned
{{lessonsLearned}}

## Gratitude
{{gratitude}}

## Tomorrow's Focus
{{tomorrowsFocus}}

## Evening Reflection
**Mood:** {{eveningMood}}
**Overall Day Rating:** {{dayRating}}/10

{{eveningThoughts}}"""


DEFAULT_TEMPLATES: List[Dict[str, Any]] = [
    {
        "id": "meeting-notes",
        "name": "Meeting Notes",
        "description": "Template for capturing meeting notes with action items",
        "category": "business",
        "tags": ["meeting", "business", "notes"],
        "content": MEETING_NOTES,
        "variables": [
            _var("meetingTitle", "Meeting Title", "Title of the meeting", required=True,
                 validation={"minLength": 3, "maxLength": 100}),
            _var("meetingDate", "Meeting Date", "Date of the meeting", "date", True),
            _var("meetingTime", "Meeting Time", "Time of the meeting", required=True),
            _var("meetingLocation", "Meeting Location", "Location or platform for the meeting"),
            # Free text: attendees are not known ahead of time, so there is no option list.
            _var("attendees", "Attendees", "List of meeting attendees", required=True),
            _var("agenda", "Agenda", "Meeting agenda items", required=True),
            _var("discussionPoints", "Discussion Points", "Key discussion points from the meeting"),
            _var("actionItems", "Action Items", "Action items and assignments"),
            _var("nextSteps", "Next Steps", "Next steps and follow-up actions"),
            _var("additionalNotes", "Additional Notes", "Any additional notes or observations"),
        ],
        "metadata": _system_metadata(4.5),
    },
    {
        "id": "project-plan",
        "name": "Project Plan",
        "description": "Template for project planning and management",
        "category": "project",
        "tags": ["project", "planning", "management"],
        "content": PROJECT_PLAN,
        "variables": [
            _var("projectName", "Project Name", "Name of the project", required=True,
                 validation={"minLength": 3, "maxLength": 100}),
            _var("projectManager", "Project Manager", "Name of the project manager", required=True),
            _var("startDate", "Start Date", "Project start date", "date", True),
            _var("endDate", "End Date", "Project end date", "date", True),
            _var("status", "Status", "Current project status", "select", True,
                 options=["Planning", "In Progress", "On Hold", "Completed", "Cancelled"]),
            _var("projectOverview", "Project Overview", "Brief overview of the project", required=True),
            _var("objectives", "Objectives", "Project objectives and goals", required=True),
            _var("scope", "Scope", "Project scope and deliverables", required=True),
            _var("timeline", "Timeline", "Project timeline and milestones"),
            _var("resources", "Resources", "Required resources and budget"),
            _var("risks", "Risks and Mitigation", "Potential risks and mitigation strategies"),
            _var("successCriteria", "Success Criteria", "Criteria for project success"),
            _var("stakeholders", "Stakeholders", "Key stakeholders and their roles"),
        ],
        "metadata": _system_metadata(4.8),
    },
    {
        "id": "daily-journal",
        "name": "Daily Journal",
        "description": "Template for daily journaling and reflection",
        "category": "personal",
        "tags": ["journal", "daily", "reflection"],
        "content": DAILY_JOURNAL,
        "variables": [
            _var("date", "Date", "Date for the journal entry", "date", True),
            _var("morningMood", "Morning Mood", "How you feel this morning", "select", True, options=MOODS),
            _var("energyLevel", "Energy Level", "Your energy level this morning", "select", True,
                 options=["High", "Medium", "Low"]),
            _var("morningThoughts", "Morning Thoughts", "Your thoughts and feelings this morning"),
            _var("todaysGoals", "Today's Goals", "What you want to accomplish today", required=True),
            _var("accomplishments", "Accomplishments", "What you accomplished today"),
            _var("challenges", "Challenges", "Challenges you faced today"),
            _var("lessonsLearned", "Lessons Learned", "What you learned today"),
            _var("gratitude", "Gratitude", "What you are grateful for today"),
            _var("tomorrowsFocus", "Tomorrow's Focus", "What you want to focus on tomorrow"),
            _var("eveningMood", "Evening Mood", "How you feel this evening", "select", True, options=MOODS),
            _var("dayRating", "Day Rating", "Rate your day from 1-10", "number", True,
                 validation={"min": 1, "max": 10}),
            _var("eveningThoughts", "Evening Thoughts", "Your thoughts and reflections this evening"),
        ],
        "metadata": _system_metadata(4.2),
    },
]

DEFAULT_CATEGORIES: List[Dict[str, Any]] = [
    {
        "id": "business",
        "name": "Business",
        "description": "Templates for business and professional use",
        "icon": "briefcase",
        "color": "#3B82F6",
        "templates": ["meeting-notes"],
    },
    {
        "id": "project",
        "name": "Project Management",
        "description": "Templates for project planning and management",
        "icon": "clipboard",
        "color": "#10B981",
        "templates": ["project-plan"],
    },
    {
        "id": "personal",
        "name": "Personal",
        "description": "Templates for personal use and reflection",
        "icon": "user",
        "color": "#F59E0B",
        "templates": ["daily-journal"],
    },
    {
        "id": "academic",
        "name": "Academic",
        "description": "Templates for academic and research work",
        "icon": "graduation-cap",
        "color": "#8B5CF6",
        "templates": [],
    },
    {
        "id": "creative",
        "name": "Creative",
        "description": "Templates for creative writing and projects",
        "icon": "palette",
        "color": "#EC4899",
        "templates": [],
    },
]

DEFAULT_WORKFLOWS: List[Dict[str, Any]] = [
    {
        "id": "project-kickoff",
        "name": "Project Kickoff Workflow",
        "description": "Complete workflow for starting a new project",
        "category": "project",
        "steps": [
            {
                "id": "step1",
                "name": "Create Project Plan",
                "type": "template",
                "templateId": "project-plan",
                "nextSteps": ["step2"],
                "metadata": {"order": 1, "isOptional": False, "estimatedTime": 30},
            },
            {
                "id": "step2",
                "name": "Schedule Kickoff Meeting",
                "type": "action",
                "action": "schedule_meeting",
                "parameters": {
                    "template": "meeting-notes",
                    "attendees": "{{projectStakeholders}}",
                    "duration": 60,
                },
                "nextSteps": ["step3"],
                "metadata": {"order": 2, "isOptional": False, "estimatedTime": 15},
            },
            {
                "id": "step3",
                "name": "Create Team Directory",
                "type": "action",
                "action": "create_directory",
                "parameters": {
                    "name": "{{projectName}} Team",
                    "structure": ["Documents", "Resources", "Communication"],
                },
                "metadata": {"order": 3, "isOptional": True, "estimatedTime": 10},
            },
        ],
        "triggers": [{"type": "manual"}],
        "metadata": {"averageCompletionTime": 55, "successRate": 0.95, "isActive": True},
    },
]


def default_templates() -> List[NoteTemplate]:
    return [NoteTemplate.model_validate(data) for data in DEFAULT_TEMPLATES]


def default_categories() -> List[TemplateCategory]:
    return [TemplateCategory.model_validate(data) for data in DEFAULT_CATEGORIES]


def default_workflows() -> List[NoteWorkflow]:
    return [NoteWorkflow.model_validate(data) for data in DEFAULT_WORKFLOWS]
