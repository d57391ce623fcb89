from .jira_client import create_jira_issue, jira_config_from_env

__all__ = ["create_jira_issue", "jira_config_from_env"]
