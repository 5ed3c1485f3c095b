from interview_coach.core.interview_config import InterviewConfig, experience_level_name
from interview_coach.core.models import Answer, Difficulty, Role

ROLE_GUIDELINES: dict[Role, dict] = {
    Role.FRONTEND: {
        "description": "Frontend Engineer",
        "topics": [
            "React/Vue/Angular",
            "JavaScript/TypeScript",
            "CSS/Styling",
            "Performance",
            "Accessibility",
            "State Management",
            "Browser APIs",
            "Build Tools",
        ],
        "levels": {
            0: ("HTML, CSS basics, JavaScript fundamentals, basic React concepts", "basic concepts and syntax"),
            1: (
                "Component lifecycle, state management, event handling, responsive design",
                "practical implementation",
            ),
            2: (
                "Advanced hooks, performance optimization, complex state management, testing",
                "optimization and best practices",
            ),
            3: (
                "Architecture decisions, scalability, advanced patterns, team leadership",
                "system design and mentoring",
            ),
            4: (
                "Framework internals, micro-frontends, performance at scale, technical strategy",
                "expert-level architecture",
            ),
        },
    },
    Role.BACKEND: {
        "description": "Backend Engineer",
        "topics": [
            "API Design",
            "Databases",
            "System Architecture",
            "Security",
            "Scalability",
            "Caching",
            "Message Queues",
            "Microservices",
        ],
        "levels": {
            0: ("REST APIs, basic database queries, HTTP methods, simple CRUD operations", "fundamental concepts"),
            1: ("Database relationships, authentication, error handling, API documentation", "practical development"),
            2: ("Database optimization, caching strategies, API security, testing", "performance and security"),
            3: ("System design, scalability patterns, microservices, database sharding", "distributed systems"),
            4: (
                "High-scale architecture, complex distributed systems, technical leadership",
                "enterprise architecture",
            ),
        },
    },
    Role.HR: {
        "description": "HR/Behavioral Interview",
        "topics": [
            "Communication",
            "Teamwork",
            "Problem Solving",
            "Leadership",
            "Conflict Resolution",
            "Adaptability",
            "Work Ethics",
        ],
        "levels": {
            0: ("Basic communication, learning attitude, teamwork, career goals", "entry-level scenarios"),
            1: ("Project collaboration, handling feedback, time management, growth mindset", "workplace situations"),
            2: ("Leading small tasks, mentoring juniors, handling conflicts, project ownership", "leadership scenarios"),
            3: (
                "Team leadership, strategic thinking, stakeholder management, decision making",
                "management situations",
            ),
            4: (
                "Organizational impact, technical strategy, culture building, executive presence",
                "leadership at scale",
            ),
        },
    },
    Role.AIML: {
        "description": "AI/ML Engineer",
        "topics": [
            "Machine Learning",
            "Deep Learning",
            "Data Processing",
            "Model Training",
            "Feature Engineering",
            "MLOps",
            "Statistics",
        ],
        "levels": {
            0: ("Basic ML concepts, Python, data structures, simple algorithms", "fundamental ML concepts"),
            1: (
                "Supervised learning, model evaluation, feature engineering, basic neural networks",
                "practical ML implementation",
            ),
            2: (
                "Advanced algorithms, hyperparameter tuning, model deployment, A/B testing",
                "production ML systems",
            ),
            3: ("ML system design, model optimization, MLOps, team leadership", "scalable ML architecture"),
            4: (
                "Research-level problems, novel architectures, ML strategy, technical leadership",
                "cutting-edge ML",
            ),
        },
    },
    Role.FULLSTACK: {
        "description": "Full Stack Engineer",
        "topics": [
            "Frontend Frameworks",
            "API Design",
            "Databases",
            "Authentication",
            "Deployment",
            "Performance",
            "Testing",
            "System Design",
        ],
        "levels": {
            0: ("HTML/CSS/JavaScript basics, simple REST APIs, basic SQL", "fundamental concepts"),
            1: (
                "Connecting frontend to APIs, authentication flows, data modeling, form handling",
                "practical end-to-end development",
            ),
            2: (
                "Caching across the stack, state management, API performance, integration testing",
                "performance and reliability",
            ),
            3: (
                "End-to-end architecture, scaling web applications, deployment pipelines, mentoring",
                "system design",
            ),
            4: (
                "Platform architecture, cross-team technical strategy, large-scale migrations",
                "expert-level architecture",
            ),
        },
    },
    Role.DEVOPS: {
        "description": "DevOps Engineer",
        "topics": [
            "CI/CD",
            "Containers",
            "Kubernetes",
            "Infrastructure as Code",
            "Monitoring",
            "Cloud Platforms",
            "Networking",
            "Incident Response",
        ],
        "levels": {
            0: ("Linux basics, version control, shell scripting, basic networking", "fundamental concepts"),
            1: ("Building CI pipelines, Docker images, basic cloud services, logging", "practical operations"),
            2: (
                "Kubernetes deployments, infrastructure as code, monitoring and alerting, secrets management",
                "reliable operations",
            ),
            3: (
                "Platform design, high availability, disaster recovery, incident leadership",
                "production systems at scale",
            ),
            4: ("Multi-region architecture, SRE strategy, cost optimization, organization-wide tooling", "expert SRE"),
        },
    },
}

SYSTEM_INSTRUCTIONS = {
    "question": (
        "You are an expert {description} interviewer who generates practical, scenario-based questions that test "
        "real-world skills. Always respond with valid JSON only. Make questions specific, detailed, and relevant "
        "to actual job scenarios."
    ),
    "evaluation": (
        "You are an expert technical interviewer who provides fair, constructive, and actionable evaluations. "
        "Always respond with valid JSON only."
    ),
    "feedback": (
        "You are an expert technical interviewer who provides comprehensive, constructive, and actionable "
        "feedback. Always respond with valid JSON only."
    ),
}


def _guidelines(role: Role, experience_level: int) -> tuple[str, list[str], str, str]:
    guidelines = ROLE_GUIDELINES[role]
    focus, difficulty_hint = guidelines["levels"].get(experience_level, guidelines["levels"][1])
    return guidelines["description"], guidelines["topics"], focus, difficulty_hint


def question_system_instructions(role: Role) -> str:
    return SYSTEM_INSTRUCTIONS["question"].format(description=ROLE_GUIDELINES[role]["description"])


def generate_question_prompt(
    role: Role,
    experience_level: int,
    config: InterviewConfig,
    question_number: int,
    difficulty: Difficulty,
    previous_questions: list[str],
) -> str:
    """Generate a prompt for a single interview question at a given position."""
    description, topics, focus, difficulty_hint = _guidelines(role, experience_level)

    previous_context = ""
    if previous_questions:
        numbered = "\n".join(f"{i}. {text}" for i, text in enumerate(previous_questions, 1))
        previous_context = f"\n\nPreviously asked questions (DO NOT repeat or be too similar):\n{numbered}"

    return f"""You are an expert {description} interviewer conducting a {config.total_estimated_minutes}-minute interview.

CANDIDATE PROFILE:
- Experience Level: {config.level_name} ({focus})
- Question {question_number} of {config.question_count}
- Time per question: {config.seconds_per_question} seconds

QUESTION REQUIREMENTS:
1. Focus Area: {focus}
2. Difficulty: {difficulty.value} ({difficulty_hint})
3. Topics to cover: {", ".join(topics)}
4. Must be PRACTICAL and SCENARIO-BASED (not just theoretical)
5. Should test real-world problem-solving ability
6. Must be answerable in {config.seconds_per_question} seconds{previous_context}

Generate ONE high-quality, practical interview question.

Return ONLY a JSON object:
{{
  "question": "Detailed, scenario-based question here",
  "category": "Specific category from the topics list"
}}"""


def evaluate_answer_prompt(question_text: str, answer_text: str, role: Role, experience_level: int) -> str:
    """Generate a prompt for scoring one answer on a 0-10 scale."""
    description = ROLE_GUIDELINES[role]["description"]
    level_name = experience_level_name(experience_level)

    return f"""You are an expert technical interviewer evaluating a candidate's answer.

Role: {description}
Experience Level: {level_name}
Question: "{question_text}"
Candidate's Answer: "{answer_text}"

Evaluate the answer based on:
1. Correctness and accuracy
2. Completeness and depth
3. Clarity of explanation
4. Practical understanding
5. Appropriate for {level_name} level

Provide a score from 0-10 where:
- 0-3: Poor (incorrect, incomplete, or unclear)
- 4-5: Below Average (partially correct but lacking depth)
- 6-7: Good (correct and reasonably complete)
- 8-9: Excellent (thorough, clear, and insightful)
- 10: Outstanding (exceptional understanding and explanation)

Return ONLY a JSON object with this exact structure:
{{
  "score": 7,
  "feedback": "2-3 sentences of constructive feedback highlighting what was good and what could be improved",
  "strengths": ["specific strength 1", "specific strength 2"],
  "improvements": ["specific improvement 1", "specific improvement 2"]
}}"""


def final_feedback_prompt(
    role: Role,
    experience_level: int,
    answers: list[Answer],
    average_score: float,
    overall_score_percent: int,
) -> str:
    """Generate a prompt for the narrative part of the final interview feedback."""
    description = ROLE_GUIDELINES[role]["description"]
    level_name = experience_level_name(experience_level)

    summaries: list[str] = []
    for i, answer in enumerate(answers, 1):
        text = answer.text if len(answer.text) <= 200 else f"{answer.text[:200]}..."
        summaries.append(
            f"Question {i}: {answer.question_text}\n"
            f"Answer: {text}\n"
            f"Score: {answer.evaluation.score:g}/10\n"
            f"Feedback: {answer.evaluation.feedback}"
        )
    transcript = "\n\n---\n\n".join(summaries)

    return f"""You are an expert technical interviewer providing comprehensive final feedback after completing an interview.

Role: {description}
Experience Level: {level_name}
Total Questions: {len(answers)}
Average Score: {average_score:.2f}/10 ({overall_score_percent}%)

Interview Performance Summary:
{transcript}

Based on the entire interview, provide:
1. strengths: Array of 3-5 specific strengths demonstrated across all answers
2. weakAreas: Array of 3-5 areas that need improvement
3. improvements: Array of 3-5 actionable, specific recommendations for improvement
4. summary: A comprehensive paragraph (4-6 sentences) summarizing overall performance, readiness for the role, and key takeaways

Be specific, constructive, and actionable. Focus on patterns across multiple answers, not just individual responses.

Return ONLY a JSON object with this exact structure:
{{
  "strengths": ["specific strength 1", "specific strength 2", "specific strength 3"],
  "weakAreas": ["specific weak area 1", "specific weak area 2", "specific weak area 3"],
  "improvements": ["actionable suggestion 1", "actionable suggestion 2", "actionable suggestion 3"],
  "summary": "Comprehensive paragraph summarizing overall performance..."
}}"""
