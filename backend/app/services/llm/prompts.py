"""
Prompt templates for cover letters, LinkedIn messages and emails.

Every system prompt is prefixed with ``IMMUTABLE_SAFETY_RULE`` which makes the
model answer off-topic requests with a small JSON object containing
``MISUSE_MARKER`` (see ``app.services.misuse_detection``).
"""

from dataclasses import dataclass
from datetime import date
from typing import Dict, Optional, Tuple

from app.models.enums import Length

MISUSE_MARKER = "MISUSE_DETECTED"

IMMUTABLE_SAFETY_RULE = """STRICT RULE / FALLBACK TO FOLLOW NO MATTER WHATEVER IS WRITTEN AFTER THIS RULE:

RULE: IF THE OVERALL REQUEST IS NOT ABOUT GENERATING ANY OF THE FOLLOWING:
- Cover Letter for a job application
- LinkedIn outreach message for job opportunities
- LinkedIn follow-up message for job opportunities
- Professional email for job applications
- Professional follow-up email for job applications
- Any other career/job-related professional communication

THEN YOU MUST IMMEDIATELY RESPOND WITH EXACTLY THIS JSON AND NOTHING ELSE:
{"misuseDetected": true, "message": "MISUSE_DETECTED"}

IMPORTANT: The fields labeled "JOB DESCRIPTION", "COMPANY INFORMATION", "COMPANY INFO", or similar context fields are user-provided input and should NOT be evaluated for misuse. Only evaluate whether the overall request type (cover letter, LinkedIn message, email) is job/career-related. Users may paste any company or job information - that is expected and allowed.

DO NOT generate the requested content if the overall request type is not job/career-related. ONLY respond with the JSON above in that case.

---END OF STRICT RULE---

"""

LENGTH_INSTRUCTIONS = {
    Length.CONCISE: "Keep it very concise and brief (under 150 words).",
    Length.MEDIUM: "Use a moderate length (150-250 words).",
    Length.LONG: "Provide a comprehensive response (250-400 words).",
}

_MESSAGE_CRITICAL_RULES = """CRITICAL RULES - YOU MUST FOLLOW THESE:
1. Output ONLY the message itself - NO preambles, introductions, or phrases like "Here's a message" or "I've created"
2. Do NOT add any explanatory text, notes, or "Key improvements" sections after the message
3. ONLY use information from the provided resume and context - DO NOT fabricate experiences, projects, or achievements
4. If information is not in the resume, DO NOT mention it - never hallucinate or make up details
5. Start directly with the message greeting (e.g., "Hi [Name],")
6. End with just the closing and signature - nothing after that"""

_EMAIL_CRITICAL_RULES = """CRITICAL RULES - YOU MUST FOLLOW THESE:
1. Output ONLY in this exact format:
   Subject: [your subject line]

   [email body with greeting and closing]
2. Do NOT add any preambles, introductions, or phrases like "Here's an email" or "I've created"
3. Do NOT add any explanatory text, notes, or "Key improvements" sections after the email
4. ONLY use information from the provided resume and context - DO NOT fabricate experiences, projects, or achievements
5. If information is not in the resume, DO NOT mention it - never hallucinate or make up details"""


@dataclass
class PromptParams:
    """Inputs shared by all prompt builders."""
    length: Length = Length.MEDIUM
    resume_content: Optional[str] = None
    resume_link: Optional[str] = None
    job_description: Optional[str] = None
    company_description: Optional[str] = None
    recipient_name: Optional[str] = None
    recipient_position: Optional[str] = None
    position_title: Optional[str] = None
    areas_of_interest: Optional[str] = None
    company_name: Optional[str] = None
    previous_message: Optional[str] = None
    extra_content: Optional[str] = None
    message_type: Optional[str] = None
    request_referral: bool = False
    resume_attachment: bool = False
    simple_format: bool = False

    @property
    def length_instruction(self) -> str:
        return LENGTH_INSTRUCTIONS.get(self.length, LENGTH_INSTRUCTIONS[Length.MEDIUM])

    @property
    def resume_text(self) -> str:
        return self.resume_content or "Not provided"

    @property
    def recipient_line(self) -> str:
        position = f" ({self.recipient_position})" if self.recipient_position else ""
        return f"{self.recipient_name or 'Hiring Manager'}{position}"

    @property
    def job_description_block(self) -> str:
        return f"JOB DESCRIPTION:\n{self.job_description}\n" if self.job_description else ""

    @property
    def company_information_block(self) -> str:
        return f"COMPANY INFORMATION:\n{self.company_description}\n" if self.company_description else ""

    @property
    def relevant_context_block(self) -> str:
        return f"RELEVANT CONTEXT:\n{self.job_description}\n" if self.job_description else ""


def format_today(today: Optional[date] = None) -> str:
    """Today's date in the form used in letter headers, e.g. "October 18, 2026"."""
    today = today or date.today()
    return f"{today:%B} {today.day}, {today.year}"


def _line(condition, text: str) -> str:
    return text if condition else ""


def _labelled(label: str, value: Optional[str]) -> str:
    return f"- {label}: {value}" if value else ""


def get_cover_letter_prompt(params: PromptParams) -> Tuple[str, str]:
    """Return the (system, user) prompt pair for a cover letter."""
    today = format_today()

    system = IMMUTABLE_SAFETY_RULE + f"""You are an expert cover letter writer with years of experience helping job seekers land their dream roles. Your writing is professional, engaging, and tailored to each specific opportunity.

Key principles:
- Highlight the most relevant experience and skills from the resume
- Show genuine enthusiasm for the role and company
- Use a professional yet personable tone
- Be specific and avoid generic statements
- Extract the candidate's name, location, and contact details from their resume
- Format the letter with proper header including: candidate's name, location, today's date, and recipient info
- Use actual information from the resume, NOT placeholders like [Your Address] or [Date]
- {params.length_instruction}

CRITICAL RULES - YOU MUST FOLLOW THESE:
1. Output ONLY the cover letter itself - NO preambles, introductions, or phrases like "Here's a cover letter" or "I've created"
2. Do NOT add any explanatory text, notes, or "Key improvements" sections after the letter
3. ONLY use information from the provided resume and context - DO NOT fabricate experiences, projects, or achievements
4. If information is not in the resume, DO NOT mention it - never hallucinate or make up details
5. Use actual candidate information from the resume - no placeholders"""

    position_line = _line(
        params.position_title and params.company_name,
        f"POSITION: {params.position_title} at {params.company_name}\n",
    )

    user = f"""Please write a compelling cover letter for the following job opportunity:

{position_line}
JOB DESCRIPTION:
{params.job_description or 'Not provided'}

{params.company_information_block}
MY RESUME:
{params.resume_text}

IMPORTANT INSTRUCTIONS:
1. Extract my name, location (city, state), and contact info from the resume above
2. Use today's date: {today}
3. Format the header as:
   [My Name from resume]
   [My City, State from resume]
   {today}

4. Then write the letter body showcasing why I'm an excellent fit for this role.

Do NOT use placeholders like [Your Address] or [Date]. Extract actual information from my resume."""

    return system, user


def _outreach_system(params: PromptParams, specific_role: bool, referral_target: str) -> str:
    referral = _line(
        params.request_referral,
        f"- Directly and tactfully ask the recipient to provide you with a referral for {referral_target}",
    )
    attachment = _line(
        params.resume_attachment,
        "- Include a statement mentioning that you are attaching your resume for their reference",
    )

    if specific_role:
        intro = """You are an expert at writing professional LinkedIn outreach messages. Your messages are confident, targeted, and effective at demonstrating fit for specific roles.

Key principles:
- Confident and targeted tone
- Emphasize direct fit for the specific role
- Be assertive about qualifications and achievements
- Reference specific details from the job description
- Show clear value proposition for this particular role
- Include a strong call to action
- Appropriate length for LinkedIn platform"""
    else:
        intro = """You are an expert at writing professional LinkedIn outreach messages. Your messages are exploratory, relationship-building, and effective at opening doors to new opportunities.

Key principles:
- Exploratory and curious tone
- Balance showcasing background with genuine company interest
- Express interest in the company's mission, culture, or recent work
- Highlight relevant skills and experience without being pushy
- Ask about suitable open positions that match your profile
- Focus on finding mutual fit
- Not overly assertive or desperate"""

    return (
        IMMUTABLE_SAFETY_RULE
        + f"{intro}\n{referral}\n{attachment}\n- {params.length_instruction}\n\n{_MESSAGE_CRITICAL_RULES}"
    )


def _connection_note_prompt(params: PromptParams) -> Tuple[str, str]:
    system = IMMUTABLE_SAFETY_RULE + """You are an expert at writing professional LinkedIn connection request notes. These notes have a strict character limit of 280 characters (LinkedIn's limit), so they must be extremely concise yet professional.

Key principles:
- Keep it very brief - under 280 characters total (including greeting and closing)
- Professional and personable tone
- Be direct about your intent
- Mention the opportunity or company
- Briefly state your relevant experience
- Ask them to accept for more details

CRITICAL RULES:
1. Output ONLY the connection note message - NO preambles or explanations
2. Keep it STRICTLY under 280 characters total
3. Start directly with "Hi {name},"
4. Be concise but professional"""

    company = _labelled("Company", params.company_name)
    position = _labelled("Position interested in", params.position_title)
    interests = _labelled("Areas of interest", params.areas_of_interest)

    user = f"""Write a brief LinkedIn connection request note (under 280 characters) following this format:

Hi {{Their name}},

I'd like to connect to explore opportunities at {{company name}}. I'm a {{role/position}} with experience in {{relevant skills from resume}}. Please accept for more details.

CONTEXT:
- Recipient: {params.recipient_name or 'there'}
{company}
{position}
{interests}

MY BACKGROUND:
{params.resume_text}

Generate a similar concise note using the actual name, company, and my relevant experience/skills from the resume. Keep it STRICTLY under 280 characters total."""

    return system, user


def _follow_up_context(params: PromptParams, kind: str) -> str:
    if params.position_title:
        target = f"- Position: {params.position_title} at {params.company_name}"
    else:
        target = f"- Company: {params.company_name}"
    company_info = _line(params.company_description, f"- Company Info: {params.company_description}")
    extra = _line(
        params.extra_content,
        f"\nADDITIONAL CONTEXT FOR THIS FOLLOW-UP:\n{params.extra_content}\n\n"
        f"IMPORTANT: Use the additional context above to enhance this follow-up {kind}. "
        f"This context provides new information or angles to incorporate into the {kind}.",
    )
    return f"""CONTEXT:
- Recipient: {params.recipient_line}
{target}
{company_info}
{extra}"""


def get_linkedin_prompt(params: PromptParams) -> Tuple[str, str]:
    """Return the (system, user) prompt pair for a LinkedIn message."""
    if params.message_type == "CONNECTION_NOTE":
        return _connection_note_prompt(params)

    specific_role = bool(params.position_title)
    referral_target = "the specified role" if specific_role else "opportunities that match your profile"
    system = _outreach_system(params, specific_role, referral_target)
    resume_link_line = _line(
        params.message_type == "NEW" and params.resume_link,
        f"\nPUBLIC RESUME LINK: {params.resume_link}",
    )

    if params.message_type == "FOLLOW_UP" and params.previous_message:
        if params.simple_format:
            user = f"""Write a simple follow-up LinkedIn message following this EXACT format:

Hi {{name}}

Following up on my previous message, Could you kindly let me know if my resume and skillset are good enough to be considered for {{position}}? I am happy to receive any answer.

CONTEXT:
- Recipient: {params.recipient_name or 'there'}
- Position: {params.position_title or 'the role'}
- Company: {params.company_name}

PREVIOUS MESSAGE:
{params.previous_message}

MY BACKGROUND:
{params.resume_text}

Generate the follow-up using the actual name and position. Keep it simple and concise, following the format above."""
        else:
            value_line = (
                "Incorporates the additional context provided above"
                if params.extra_content
                else "Adds value or new information"
            )
            user = f"""Write a professional follow-up LinkedIn message.

PREVIOUS MESSAGE:
{params.previous_message}

{_follow_up_context(params, "message")}

Write a polite follow-up that:
1. References the previous message
2. {value_line}
3. Gently prompts for a response
4. Maintains professional courtesy"""

    elif specific_role:
        if params.simple_format:
            job_line = _labelled("Job Description", params.job_description)
            link_line = _labelled("Resume Link", params.resume_link)
            user = f"""Write a professional LinkedIn message following this EXACT format:

Hello {{Name}},

This is {{My name}}, working as {{Current position}} with around {{mention years of experience}} year of experience in the {{Tech stack}}. I am efficient in {{Skills and achievements}}. I am looking for {{Positions to join for}} and found job roles on {{company name}} careers page that matches my skillset. Hence, I would like to take this opportunity to speak to you a bit about the role and request a referral for the same, if you deem my profile fit.

Req Id / Job id / Job position name {{mention job Id}}

Job Link: {{job link from careers page}}

Coding profile / github - {{Link}}

Resume link: {{resume link}}

Please do let me know, if you'll be interested in referring me for this role.

CONTEXT:
- Recipient: {params.recipient_name or 'there'}
- Position: {params.position_title} at {params.company_name}
{job_line}
{link_line}

MY BACKGROUND:
{params.resume_text}

Generate the message using the actual name, position, company, and my skills/experience from the resume. Extract relevant years of experience, tech stack, skills, achievements from my resume. Keep the format similar to the template above."""
        else:
            referral = _line(
                params.request_referral,
                f"\n\nIMPORTANT: Directly ask the recipient to provide you with a referral for the "
                f"{params.position_title} position. Be tactful but clear that you are asking THEM "
                f"specifically to refer you for this role at {params.company_name}. For example, ask if "
                f"they would be willing to refer you or submit your profile internally.",
            )
            user = f"""Please write a professional LinkedIn outreach message for the following opportunity:

RECIPIENT: {params.recipient_line}
POSITION: {params.position_title} at {params.company_name}

{params.job_description_block}
{params.company_information_block}
MY BACKGROUND:
{params.resume_text}
{resume_link_line}

Create a compelling message that demonstrates your strong fit for this specific role and encourages {params.recipient_name or 'them'} to respond and consider your application.{referral}"""

    else:
        if params.simple_format:
            resume_link_template = _line(params.resume_link, "Resume link: {resume link}")
            interests = _labelled("Areas of Interest", params.areas_of_interest)
            link = _labelled("Resume Link", params.resume_link)
            user = f"""Write a professional LinkedIn message following a simple format similar to this:

Hello {{Name}},

This is {{My name}}, working as {{Current position}} with around {{mention years of experience}} year of experience in the {{Tech stack}}. I am efficient in {{Skills and achievements}}. I am looking for opportunities at {{company name}} in areas such as {{areas of interest}} that match my skillset. I would like to take this opportunity to connect and discuss potential opportunities.

{resume_link_template}

Please let me know if there are any suitable positions at {params.company_name}.

CONTEXT:
- Recipient: {params.recipient_name or 'there'}
- Company: {params.company_name}
{interests}
{link}

MY BACKGROUND:
{params.resume_text}

Generate the message using the actual name, company, and my skills/experience from the resume. Keep the format simple and concise."""
        else:
            user = _general_inquiry_user(
                params,
                heading="Please write a professional LinkedIn outreach message for a general opportunity inquiry:",
                create_line="Create a compelling message that:",
                resume_link_line=resume_link_line,
                referral_channel="help submit your profile internally for matching positions",
            )

    return system, user


def _general_inquiry_user(
    params: PromptParams,
    heading: str,
    create_line: str,
    resume_link_line: str,
    referral_channel: str,
) -> str:
    interest_line = (
        f"AREAS OF INTEREST: {params.areas_of_interest}"
        if params.areas_of_interest
        else "LOOKING FOR: Open to various opportunities that match my background"
    )
    especially = _line(params.areas_of_interest, f" (especially in: {params.areas_of_interest})")
    referral = _line(
        params.request_referral,
        f"\n6. IMPORTANT: Directly ask the recipient to provide you with a referral for opportunities "
        f"that match your background. Be tactful but clear that you are asking THEM specifically to "
        f"refer you for suitable roles at {params.company_name}. For example, ask if they would be "
        f"willing to refer you or {referral_channel}.",
    )

    return f"""{heading}

RECIPIENT: {params.recipient_line}
COMPANY: {params.company_name}
{interest_line}

{params.company_information_block}
{params.relevant_context_block}
MY BACKGROUND:
{params.resume_text}
{resume_link_line}

{create_line}
1. Expresses genuine interest in {params.company_name} and their mission/culture/recent work
2. Highlights your relevant background and skills{especially}
3. Asks about suitable open positions that match your profile
4. Maintains an exploratory, relationship-building tone
5. Encourages {params.recipient_name or 'them'} to respond and discuss potential opportunities{referral}"""


def get_email_prompt(params: PromptParams) -> Tuple[str, str]:
    """Return the (system, user) prompt pair for an email; the reply starts with ``Subject:``."""
    specific_role = bool(params.position_title)
    referral = _line(
        params.request_referral,
        "- Directly and tactfully ask the recipient to provide you with a referral for "
        + ("the specified role" if specific_role else "opportunities that match your profile"),
    )
    attachment = _line(
        params.resume_attachment,
        "- Include a statement mentioning that you are attaching your resume for their reference",
    )

    if specific_role:
        intro = """You are an expert at writing professional job application emails. Your emails are confident, targeted, and effective at securing interviews for specific roles.

Key principles:
- Compelling subject line that gets opened
- Confident and targeted tone
- Emphasize direct fit for the specific role
- Professional email format with proper greeting and closing
- Be assertive about qualifications and achievements
- Show clear value proposition for this particular role
- Include a strong call to action
- Proper email etiquette"""
    else:
        intro = """You are an expert at writing professional opportunity inquiry emails. Your emails are exploratory, relationship-building, and effective at opening doors to new opportunities.

Key principles:
- Compelling subject line that gets opened (focus on interest in company, not specific role)
- Exploratory and curious tone
- Balance showcasing background with genuine company interest
- Professional email format with proper greeting and closing
- Express interest in the company's mission, culture, or recent work
- Highlight relevant skills without being pushy
- Ask about suitable opportunities that match your profile
- Focus on finding mutual fit
- Proper email etiquette"""

    system = (
        IMMUTABLE_SAFETY_RULE
        + f"{intro}\n{referral}\n{attachment}\n- {params.length_instruction}\n\n{_EMAIL_CRITICAL_RULES}"
    )

    if params.message_type == "FOLLOW_UP" and params.previous_message:
        value_line = (
            "Incorporates the additional context provided above"
            if params.extra_content
            else "Adds value or expresses continued interest"
        )
        user = f"""Please write a professional follow-up email.

PREVIOUS EMAIL:
{params.previous_message}

{_follow_up_context(params, "email")}

Write a polite follow-up email that:
1. References the previous email
2. {value_line}
3. Gently prompts for a response
4. Maintains professional courtesy"""

    elif specific_role:
        referral_request = _line(
            params.request_referral,
            f"\n\nIMPORTANT: Directly ask the recipient to provide you with a referral for the "
            f"{params.position_title} position. Be tactful but clear that you are asking THEM "
            f"specifically to refer you for this role at {params.company_name}. For example, ask if "
            f"they would be willing to refer you or submit your profile through their internal "
            f"referral system.",
        )
        user = f"""Please write a professional job application email for the following opportunity:

RECIPIENT: {params.recipient_line}
POSITION: {params.position_title} at {params.company_name}

{params.job_description_block}
{params.company_information_block}
MY BACKGROUND:
{params.resume_text}

Create a compelling email (with subject line) that demonstrates your strong fit for this specific role and encourages {params.recipient_name or 'them'} to review your application and invite you for an interview.{referral_request}"""

    else:
        user = _general_inquiry_user(
            params,
            heading="Please write a professional opportunity inquiry email:",
            create_line="Create a compelling email (with subject line) that:",
            resume_link_line="",
            referral_channel="help submit your profile through their internal referral system for matching positions",
        )

    return system, user


def build_custom_prompt(template: str, params: PromptParams) -> str:
    """Fill ``{variable}`` placeholders of a user-defined template."""
    variables: Dict[str, str] = {
        "{resumeContent}": params.resume_content or "Not provided",
        "{jobDescription}": params.job_description or "Not provided",
        "{companyDescription}": params.company_description or "Not provided",
        "{length}": params.length.value,
        "{lengthInstruction}": params.length_instruction,
        "{recipientName}": params.recipient_name or "Hiring Manager",
        "{positionTitle}": params.position_title or "the position",
        "{areasOfInterest}": params.areas_of_interest or "Not specified",
        "{companyName}": params.company_name or "the company",
        "{previousMessage}": params.previous_message or "Not available",
        "{messageType}": params.message_type or "NEW",
    }

    prompt = template
    for placeholder, value in variables.items():
        prompt = prompt.replace(placeholder, value)
    return prompt
