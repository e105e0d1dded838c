"""
Relationship extraction for cascading filters.

Scans the loaded collection once and derives the company / department /
team / user indices the filter options are built from. Companies and
departments exist only as tags on tasks, so they are discovered here rather
than loaded from anywhere.
"""

from collections import defaultdict
from dataclasses import dataclass, field


@dataclass(frozen=True)
class UserOption:
    id: int
    username: str
    teams: tuple = ()

    def as_dict(self):
        return {'id': self.id, 'username': self.username, 'teams': list(self.teams)}


@dataclass(frozen=True)
class RelationshipIndex:
    unique_teams: tuple = ()
    unique_departments: tuple = ()
    unique_companies: tuple = ()
    unique_users: tuple = ()
    company_department_map: dict = field(default_factory=dict)
    department_team_map: dict = field(default_factory=dict)
    department_user_map: dict = field(default_factory=dict)

    def departments_for(self, company):
        return self.company_department_map.get(company, ())

    def teams_for(self, department):
        return self.department_team_map.get(department, ())

    def users_for(self, department):
        return self.department_user_map.get(department, ())


def _by_username(option):
    return (option.username, option.id is None, option.id if option.id is not None else 0)


def extract_relationships(members):
    """
    Build a RelationshipIndex from TeamMember records in a single pass.

    Buckets are sets while accumulating and become sorted tuples once at the
    end. A task without a department never reaches the department-keyed maps
    but still contributes its company; the member's teams are recorded
    regardless of their tasks.

    Args:
        members: Iterable of TeamMember

    Returns:
        RelationshipIndex
    """
    teams = set()
    departments = set()
    companies = set()
    users = {}

    company_departments = defaultdict(set)
    department_teams = defaultdict(set)
    department_users = defaultdict(dict)

    for member in members:
        option = UserOption(id=member.id, username=member.username, teams=tuple(member.teams))
        users.setdefault(member.id, option)
        teams.update(member.teams)

        for _submission, task in member.iter_tasks():
            company = task.company_name
            department = task.department_name

            if company:
                companies.add(company)
            if not department:
                continue

            departments.add(department)
            if company:
                company_departments[company].add(department)
            department_teams[department].update(member.teams)
            department_users[department].setdefault(member.id, option)

    return RelationshipIndex(
        unique_teams=tuple(sorted(teams)),
        unique_departments=tuple(sorted(departments)),
        unique_companies=tuple(sorted(companies)),
        unique_users=tuple(sorted(users.values(), key=_by_username)),
        company_department_map={
            company: tuple(sorted(names)) for company, names in sorted(company_departments.items())
        },
        department_team_map={
            department: tuple(sorted(names)) for department, names in sorted(department_teams.items())
        },
        department_user_map={
            department: tuple(sorted(options.values(), key=_by_username))
            for department, options in sorted(department_users.items())
        },
    )
