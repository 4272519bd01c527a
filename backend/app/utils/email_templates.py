from html import escape

_LAYOUT = """<!DOCTYPE html>
<html>
  <body style="font-family: Arial, sans-serif; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="background: #2e7d5b; padding: 16px; text-align: center;">
      <h1 style="color: #fff; margin: 0;">{title}</h1>
    </div>
    <div style="background: #f9f9f9; padding: 20px;">
      {body}
    </div>
    <p style="font-size: 0.8em; color: #888; text-align: center;">This is an automated message, please do not reply.</p>
  </body>
</html>
"""


def _render(title: str, body: str) -> str:
    return _LAYOUT.format(title=escape(title), body=body)


def verification_email(code: str) -> tuple[str, str]:
    body = (
        "<p>Thank you for signing up! Your verification code is:</p>"
        f'<p style="font-size: 32px; font-weight: bold; letter-spacing: 5px; color: #2e7d5b;">{escape(code)}</p>'
        "<p>Enter this code on the verification page to complete your registration.</p>"
        "<p>This code will expire in 1 hour for security reasons.</p>"
    )
    return "Verify your email address", _render("Verify Your Email", body)


def welcome_email(first_name: str, app_name: str) -> tuple[str, str]:
    body = (
        f"<p>Hello {escape(first_name)},</p>"
        f"<p>Welcome to {escape(app_name)}! Your email has been verified and your account is now active.</p>"
        "<p>You can now share posts, ask questions and connect with health professionals.</p>"
    )
    return f"Welcome to {app_name}", _render(f"Welcome to {app_name}", body)


def password_reset_email(reset_url: str) -> tuple[str, str]:
    body = (
        "<p>We received a request to reset your password. If you didn't make this request, please ignore this email.</p>"
        f'<p style="text-align: center;"><a href="{escape(reset_url, quote=True)}" '
        'style="background: #2e7d5b; color: #fff; padding: 12px 20px; text-decoration: none;">Reset Password</a></p>'
        "<p>This link will expire in 1 hour for security reasons.</p>"
    )
    return "Password Reset Request", _render("Password Reset", body)


def password_reset_success_email() -> tuple[str, str]:
    body = (
        "<p>Your password has been successfully reset.</p>"
        "<p>If you did not initiate this password reset, please contact our support team immediately.</p>"
    )
    return "Password Reset Successful", _render("Password Reset Successful", body)
