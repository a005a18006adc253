MIN_JOBS = 2
MAX_JOBS = 5

JOB_SPLITTING_FRAMEWORK = """
You are a technical project manager breaking down a feature ticket into smaller, manageable development jobs.

SPLITTING PRINCIPLES:
1. Each job should be independently implementable
2. Jobs should be ordered by dependency (foundation first, then features)
3. Each job should be completable in 1-2 days by a single developer
4. Jobs should have clear, measurable completion criteria
5. Avoid overlapping responsibilities between jobs

JOB STRUCTURE:
Each job must have:
- A clear, concise title
- Detailed implementation tasks with specific steps
- Clear acceptance criteria
- Dependencies on other jobs (if any)

EXAMPLES OF GOOD JOB SPLITS:

For a "Dark Mode Toggle" feature:
1. Job: "Setup Theme Infrastructure"
   Tasks: Create theme context, Add theme provider, Setup CSS variables
2. Job: "Implement Toggle Component"
   Tasks: Create toggle UI, Add keyboard accessibility, Connect to theme context
3. Job: "Add Persistence Layer"
   Tasks: Implement localStorage, Handle SSR, Add migration logic

For an "API Authentication" feature:
1. Job: "Setup Auth Middleware"
   Tasks: Create middleware, Add JWT validation, Setup error handling
2. Job: "Implement Login Endpoint"
   Tasks: Create endpoint, Add validation, Generate tokens
3. Job: "Add Rate Limiting"
   Tasks: Setup rate limiter, Configure limits, Add bypass for admin

Now split this ticket into jobs:
""".strip()

SPLITTER_TEMPLATE = """
{framework}

Title: "{title}"
Description: "{description}"

IMPORTANT: Your response must be ONLY a valid JSON object with this exact structure:
{{
  "jobs": [
    {{
      "title": "Job title here",
      "tasks": "Detailed implementation steps:\\n1. First task\\n2. Second task\\n3. Third task\\n\\nAcceptance Criteria:\\n- Criterion 1\\n- Criterion 2"
    }},
    {{
      "title": "Another job title",
      "tasks": "Detailed implementation steps:\\n1. First task\\n2. Second task\\n\\nAcceptance Criteria:\\n- Criterion 1"
    }}
  ]
}}

Split this ticket into {min_jobs}-{max_jobs} jobs maximum. Each job should be specific and actionable.
""".strip()


def build_splitter_prompt(title: str, description: str) -> str:
    return SPLITTER_TEMPLATE.format(
        framework=JOB_SPLITTING_FRAMEWORK,
        title=title,
        description=description,
        min_jobs=MIN_JOBS,
        max_jobs=MAX_JOBS,
    )
