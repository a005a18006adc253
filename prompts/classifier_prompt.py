TICKET_EXAMPLES = """
INCOMPLETE TICKETS (should be rejected):
1. Title: "User preferences backend"
   Description: "_(Incomplete)_ Define an API to store the theme preference in the DB, linked to the user. SSR handling?"
   Reason: Too vague, lacks acceptance criteria, no clear implementation details

2. Title: "Sync theme across tabs"
   Description: "_(Incomplete)_ Describe a strategy: listen to the storage event to propagate changes. Define tests."
   Reason: Incomplete description, strategy not defined, tests not specified

COMPLETE TICKETS (should be accepted):
1. Title: "Documentation"
   Description: "Add a docs/theme-toggle.md section explaining how useTheme works, where theme-client.ts is injected, and how to customise the colours. Update the README with activation instructions.

   *Acceptance Criteria*:
   * Clear and concise doc
   * .env.example updated if needed
   * Link to the doc from the README"
   Reason: Clear objectives, specific files mentioned, acceptance criteria provided

2. Title: "Button to switch between dark/light"
   Description: "Create ThemeToggle.tsx which uses useTheme(). Must be accessible: button with aria-pressed, sun/moon icon.

   *Acceptance Criteria*:
   * Button reachable by keyboard
   * Icon changes with the theme
   * Calls setTheme on click
   * Playwright e2e test (click = toggle)"
   Reason: Specific component name, clear requirements, accessibility considered, test requirements defined

3. Title: "Dark Mode Toggle (Next.js + Tailwind)"
   Description: "Implement a Dark/Light toggle in the Next.js App Router project. By default follow the system preference (prefers-color-scheme). On click, apply the theme immediately, persist it in localStorage and reflect it with a dark class on <html>. Guarantee accessibility, no flash of unstyled content, and minimal test coverage.

   *Labels*: ui, nextjs, tailwind, theme
   *Components*: WebApp"
   Reason: Comprehensive requirements, technical details provided, specific implementation approach
""".strip()

CLASSIFIER_TEMPLATE = """
You are a technical project manager assessing Jira tickets for completeness and clarity.

Based on the following examples, assess whether a ticket should be rejected or accepted:

{examples}

ASSESSMENT CRITERIA:
- REJECT if the description is vague, incomplete, or lacks clear requirements
- REJECT if there are no acceptance criteria or success metrics
- REJECT if the technical approach is unclear or undefined
- ACCEPT if the ticket has clear objectives, specific requirements, and defined acceptance criteria
- ACCEPT if the ticket provides enough detail for a developer to start working

Now assess this ticket:

Title: "{title}"
Description: "{description}"

IMPORTANT: Your response must be ONLY a valid JSON object with this exact structure:
{{
  "rejected": true or false,
  "reason": "Brief explanation of the decision"
}}
""".strip()


def build_classifier_prompt(title: str, description: str) -> str:
    return CLASSIFIER_TEMPLATE.format(
        examples=TICKET_EXAMPLES,
        title=title,
        description=description,
    )
