"""Enums module for the OnTrack fetch layer.

Contains all enumeration classes used throughout the package.
"""

from enum import StrEnum


class IdentityRole(StrEnum):
    """Identity a credential belongs to. Admins share the student namespace."""
    STUDENT = "student"
    MENTOR = "mentor"


class CacheFamily(StrEnum):
    """Durable cache families, one per fetch variant."""
    DASHBOARD = "dashboard"
    PUBLIC = "public"


class Entity(StrEnum):
    """Backend entity routers, mounted under ``/api/<value>``."""
    STUDENTS = "onboardstudents"
    MENTORS = "onboardmentors"
    ASSESSMENTS = "assessments"
    RESOURCES = "resources"
    EVENTS = "events"
    ANNOUNCEMENTS = "announcements"
    ASSIGNMENTS = "mentorstudentassignment"
    COHORTS = "cohorts"
    MENTORSHIP = "mentorship"
    PROJECTS = "projects"
    HELP_REQUESTS = "help-requests"
    TASKS = "addtask"
    COURSE_ASSIGNMENTS = "addassignment"
    ACCESS_CONTROL = "accesscontrol"
    MODULES = "modules"
