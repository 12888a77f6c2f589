# send_test_email.py
import sys

from cinema_api.core.email_client import send_password_reset_email, send_verification_email


def main():
    if len(sys.argv) < 2:
        print("usage: python send_test_email.py you@example.com [en|lo]")
        sys.exit(1)

    to_email = sys.argv[1]
    locale = sys.argv[2] if len(sys.argv) > 2 else "en"

    print(f"Sending test emails to {to_email} ({locale})...")

    send_verification_email(to_email, "test-verification-token", locale)
    send_password_reset_email(to_email, "test-reset-token", locale)

    print("If no errors: both emails sent! Check your inbox.")


if __name__ == "__main__":
    main()
