"""Signup welcome template: sent when a cart completes (or a free cart is created)."""

from html import escape


class SignupWelcomeTemplate:
    @staticmethod
    def render(context: dict) -> dict:
        name = context.get("name") or "there"
        plan = context.get("plan_display_name") or context.get("plan", "your plan")
        signup_url = context["signup_url"]
        expires_at = context.get("expires_at", "")
        amount = context.get("amount")
        currency = context.get("currency", "")

        paid_line = f"We've received your payment of {currency} {amount}.\n\n" if amount else ""
        return {
            "subject": f"Welcome aboard! Finish setting up your {plan} account",
            "body": (
                f"Hi {name},\n\n"
                f"Thanks for choosing the {plan} plan.\n\n"
                f"{paid_line}"
                "Complete your account setup here:\n"
                f"{signup_url}\n\n"
                f"This link is valid until {expires_at}.\n"
            ),
            "html_body": (
                f"<p>Hi {escape(name)},</p>"
                f"<p>Thanks for choosing the <strong>{escape(plan)}</strong> plan.</p>"
                f'<p><a href="{escape(signup_url)}">Complete your account setup</a></p>'
                f"<p>This link is valid until {escape(str(expires_at))}.</p>"
            ),
        }
