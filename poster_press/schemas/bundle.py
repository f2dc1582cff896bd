# poster_press/schemas/bundle.py
"""Schema for a project's input bundle (the ai_summary.json document)."""

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Only this many figures are placed on a poster; the rest are ignored
MAX_FIGURES = 2


class Figure(BaseModel):
    """A figure reference: storage path of the image plus its caption."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    file_path: str | None = Field(
        default=None,
        alias="filePath",
        description="Storage path of the figure image (None = no image)",
    )
    caption: str = Field(default="", description="Caption text (unescaped)")

    @field_validator("caption", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return "" if value is None else value


class InputBundle(BaseModel):
    """Structured poster content for one project.

    All text fields are raw user text; escaping happens in the renderer.
    """

    model_config = ConfigDict(extra="ignore")

    title: str = Field(default="", description="Poster title")
    authors: str = Field(default="", description="Author line")
    affiliations: str = Field(default="", description="Affiliation line")
    intro: str = Field(default="", description="Introduction section")
    methods: str = Field(default="", description="Methods section")
    results: str = Field(default="", description="Results section")
    discussion: str = Field(default="", description="Discussion section")
    conclusion: str = Field(default="", description="Conclusion section")
    figures: list[Figure] = Field(
        default_factory=list, description="Ordered figure references"
    )

    @field_validator(
        "title",
        "authors",
        "affiliations",
        "intro",
        "methods",
        "results",
        "discussion",
        "conclusion",
        mode="before",
    )
    @classmethod
    def _text_or_empty(cls, value):
        if value is None:
            return ""
        if isinstance(value, list):
            # Author and affiliation lists are joined into one line
            return ", ".join(str(v) for v in value)
        return value

    @field_validator("figures", mode="before")
    @classmethod
    def _figures_or_empty(cls, value):
        return [] if value is None else value

    @property
    def placed_figures(self) -> list[Figure]:
        """The figures that end up on the poster (first MAX_FIGURES)."""
        return self.figures[:MAX_FIGURES]
