"""Email bodies sent by the account workflows."""

import html

WELCOME_SUBJECT = "Welcome to the Admin Portal"
RESET_SUBJECT = "Password Reset Request"


def welcome_email(
    fullname: str, email: str, role: str, temporary_password: str, setup_link: str
) -> str:
    return f"""Hello {fullname},

You have been registered as a {role.upper()} in the Admin Portal.

Login Email: {email}
Temporary Password: {temporary_password}

Please log in using your temporary password and set a new one here:
{setup_link}

Regards,
Account Management
"""


def reset_email_text(fullname: str, reset_link: str, minutes: int) -> str:
    return (
        f"Hello {fullname},\n\n"
        "You requested a password reset for your Admin Portal account.\n"
        f"Reset your password here (valid {minutes} minutes): {reset_link}\n\n"
        "If this wasn't you, ignore this email.\n\n"
        "Account Management"
    )


def reset_email_html(fullname: str, reset_link: str, minutes: int) -> str:
    fullname = html.escape(fullname)
    reset_link = html.escape(reset_link)
    return f"""
<p>Hello {fullname},</p>
<p>You requested a password reset for your Admin Portal account.</p>
<p>This link is valid for {minutes} minutes:</p>
<p><a href="{reset_link}" target="_blank">{reset_link}</a></p>
<p>If this wasn't you, ignore this email.</p>
<p>Account Management</p>
"""
