"""Help-center catalogue: categories, article metadata and article bodies.

Bodies use the markup understood by ``utils.markup.render_article``.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class HelpArticle:
    id: str
    title: str
    excerpt: str


@dataclass(frozen=True)
class HelpCategory:
    id: str
    name: str
    articles: tuple[HelpArticle, ...] = field(default_factory=tuple)


HELP_CATEGORIES: tuple[HelpCategory, ...] = (
    HelpCategory("getting-started", "Getting Started", (
        HelpArticle("gs-1", "Dashboard Overview",
                    "Learn about the main dashboard features and statistics."),
        HelpArticle("gs-2", "Creating Your First Event",
                    "Step-by-step guide to creating and managing events."),
        HelpArticle("gs-3", "Managing Activities",
                    "How to add and edit activities for your events."),
    )),
    HelpCategory("events-management", "Events Management", (
        HelpArticle("em-1", "Event Settings",
                    "Configure dates, themes, and event details."),
    )),
    HelpCategory("main-page", "Main Page", (
        HelpArticle("mp-1", "Scheduling the Main Page",
                    "Show different landing content during chosen date ranges."),
    )),
    HelpCategory("users", "User Management", (
        HelpArticle("usr-1", "User Roles and Permissions",
                    "Understanding different user roles in the system."),
        HelpArticle("usr-2", "Adding New Administrators",
                    "How to add and manage system administrators."),
        HelpArticle("usr-3", "Profile Settings",
                    "Updating your profile details."),
    )),
)


ARTICLE_BODIES: dict[str, str] = {
    "gs-1": """
        # Dashboard Overview

        The dashboard is the first page you see after signing in.

        ## What the dashboard shows

        - **Totals** for events, activities, ads, educational posts, partners and inquiries
        - **Upcoming and completed events**, split by end date
        - **Recent events and activities**, newest first
        - **Main page status**, naming the configuration visitors currently see

        ## Navigating

        Use the sidebar to open each management page. Every page lists records newest first.
    """,
    "gs-2": """
        # Creating Your First Event

        ## Steps

        1. Open **Events** from the sidebar
        2. Click **Add Event**
        3. Enter the event name, theme, start date, end date and a description
        4. Optionally attach a logo image (PNG or JPG, up to 5 MB)
        5. Click **Save**

        ## Event status

        - **Upcoming** events end today or later
        - **Completed** events ended before today

        The status is recalculated every time the event is saved.
    """,
    "gs-3": """
        # Managing Activities

        Activities always belong to an event.

        ## Adding an activity

        1. Open **Activities** and pick the parent event
        2. Fill in the name, theme, description, dates and times
        3. Optionally attach an image
        4. Click **Save**

        ### Tips

        - Filter the activity list by event to find entries quickly
        - Deleting an activity also removes its stored image
    """,
    "em-1": """
        # Event Settings

        ## Dates

        - The **start date** may not be after the **end date**
        - Single-day events use the same start and end date

        ## Logos

        Uploading a new logo replaces the previous one. The old file is removed from storage
        when possible; if removal fails the event is still saved.
    """,
    "mp-1": """
        # Scheduling the Main Page

        The public landing page shows a **background image** and a **subtitle**.

        ## Default configuration

        - There is always exactly one default configuration
        - It is shown whenever no scheduled configuration is active
        - It cannot be deleted, only edited

        ## Scheduled configurations

        - Each has a start and end date; the end must be after the start and in the future
        - A configuration is active from its start up to and including its end
        - The landing page re-checks the schedule every minute

        ### Overlapping schedules

        If two schedules overlap, the **most recently created** one is shown. Saving an
        overlapping schedule succeeds but reports the overlap so it can be reviewed.
    """,
    "usr-1": """
        # User Roles and Permissions

        ## Available roles

        ### Administrator

        - **Full access** to every management page
        - **User management**: create, edit and delete accounts

        ### User

        - **Content management** for events, activities, ads, educational posts and partners
        - **No user management** access

        ## How roles are assigned

        The role follows the position: a user whose position is **Admin** is an administrator,
        everyone else is a standard user.
    """,
    "usr-2": """
        # Adding New Administrators

        ## Steps

        1. Open **Users** (administrators only)
        2. Click **Add User**
        3. Enter the email address, full name, department and a temporary password
        4. Set the position to **Admin**
        5. Click **Save**

        ### Security

        - Administrators cannot delete their own account
        - Share temporary passwords through a secure channel
    """,
    "usr-3": """
        # Profile Settings

        ## What you can change

        - **Full name**
        - **Department**

        Your position and role can only be changed by an administrator.
    """,
}


def find_article(article_id: str) -> tuple[HelpCategory, HelpArticle] | None:
    for category in HELP_CATEGORIES:
        for article in category.articles:
            if article.id == article_id:
                return category, article
    return None


def search_categories(query: str) -> list[HelpCategory]:
    """Categories filtered to articles whose title or excerpt contains
    *query* (case-insensitive); categories left empty are dropped."""
    needle = query.strip().lower()
    if not needle:
        return list(HELP_CATEGORIES)
    results: list[HelpCategory] = []
    for category in HELP_CATEGORIES:
        matches = tuple(
            a for a in category.articles
            if needle in a.title.lower() or needle in a.excerpt.lower()
        )
        if matches:
            results.append(HelpCategory(category.id, category.name, matches))
    return results
