"""Constants module for the OnTrack fetch layer.

Contains default timings, durable storage keys and backend paths shared by the
cache, credential and HTTP layers.
"""

from typing import Dict, Final, Tuple

from .enums import CacheFamily, Entity, IdentityRole

# Cache entries older than this are stale (milliseconds)
DEFAULT_CACHE_FRESHNESS_MS: Final[int] = 300_000

# Deadline for one logical fetch, retries and backoff included
DEFAULT_REQUEST_TIMEOUT_SECONDS: Final[float] = 15.0

# Deadline for a single HTTP attempt
DEFAULT_HTTP_ATTEMPT_TIMEOUT_SECONDS: Final[float] = 10.0
DEFAULT_HTTP_CONNECT_TIMEOUT_SECONDS: Final[float] = 5.0

DEFAULT_PUBLIC_MAX_ATTEMPTS: Final[int] = 3
DEFAULT_DASHBOARD_MAX_ATTEMPTS: Final[int] = 2
DEFAULT_RETRY_BASE_DELAY_SECONDS: Final[float] = 1.0

# Durable storage keys, one shared mapping per cache family
CACHE_STORAGE_KEYS: Final[Dict[CacheFamily, str]] = {
    CacheFamily.DASHBOARD: "dashboardCache",
    CacheFamily.PUBLIC: "publicApiCache",
}

# (token key, profile key) per identity; the namespaces never overlap
CREDENTIAL_STORAGE_KEYS: Final[Dict[IdentityRole, Tuple[str, str]]] = {
    IdentityRole.STUDENT: ("authToken", "user"),
    IdentityRole.MENTOR: ("mentorAuthToken", "mentor"),
}

# Login endpoints per identity
LOGIN_PATHS: Final[Dict[IdentityRole, str]] = {
    IdentityRole.STUDENT: "/onboardstudents/login",
    IdentityRole.MENTOR: "/onboardmentors/login",
}
ADMIN_LOGIN_PATH: Final[str] = "/adminlogin/adminlogin"
VERIFY_TOKEN_PATH: Final[str] = "/adminlogin/verify"

PROFILE_PATHS: Final[Dict[IdentityRole, str]] = {
    IdentityRole.STUDENT: "/onboardstudents/profile",
    IdentityRole.MENTOR: "/onboardmentors/profile",
}

# Body flag the backend sets on a 403 when the credential was revoked
ACCESS_DENIED_FLAG: Final[str] = "accessDenied"

# Create path suffix and update verb used by each entity router
ENTITY_ROUTES: Final[Dict[Entity, Tuple[str, str]]] = {
    Entity.STUDENTS: ("/onboardstudent", "PATCH"),
    Entity.MENTORS: ("/onboardmentor", "PATCH"),
    Entity.ASSESSMENTS: ("", "PATCH"),
    Entity.RESOURCES: ("", "PATCH"),
    Entity.EVENTS: ("", "PATCH"),
    Entity.ANNOUNCEMENTS: ("", "PUT"),
    Entity.ASSIGNMENTS: ("", "PUT"),
    Entity.COHORTS: ("/createcohort", "PATCH"),
    Entity.MENTORSHIP: ("/createassessment", "PATCH"),
    Entity.PROJECTS: ("", "PUT"),
    Entity.HELP_REQUESTS: ("", "PUT"),
    Entity.TASKS: ("", "PUT"),
    Entity.COURSE_ASSIGNMENTS: ("", "PUT"),
    Entity.ACCESS_CONTROL: ("/create", "PATCH"),
    Entity.MODULES: ("/signup", "PATCH"),
}

# Entities whose router exposes GET /total
ENTITIES_WITH_TOTAL: Final[frozenset] = frozenset(
    {
        Entity.ASSESSMENTS,
        Entity.COHORTS,
        Entity.TASKS,
        Entity.COURSE_ASSIGNMENTS,
    }
)

# Admin dashboard endpoints, loaded phase by phase. The bool marks public reads.
DASHBOARD_PHASES: Final[Tuple[Tuple[Tuple[str, bool], ...], ...]] = (
    (
        ("/onboardstudents/total-students", False),
        ("/onboardmentors/total-mentors", False),
        ("/onboardstudents/totals-by-programs", False),
        ("/onboardstudents/totals-by-tracks", False),
    ),
    (
        ("/assessments/total", True),
        ("/cohorts/total", False),
        ("/mentorstudentassignment/active-count", False),
    ),
    (
        ("/onboardstudents/internship-tracks-distribution", False),
        ("/onboardstudents/mentorship-tracks-distribution", False),
        ("/onboardmentors/mentors-by-track", False),
        ("/onboardstudents/total-by-track/Web%20Development", False),
        ("/onboardstudents/summary-statistics", False),
        ("/assessments/totals-by-program", True),
        ("/assessments/totals-by-type", True),
        ("/help-requests/admin", False),
    ),
)

TIMEOUT_DISPLAY_MESSAGE: Final[str] = "Request timeout"
NETWORK_DISPLAY_MESSAGE: Final[str] = "Network error - please check your connection"
UNEXPECTED_DISPLAY_MESSAGE: Final[str] = "An unexpected error occurred"
