"""REST API server for BlockForge."""

import logging
from typing import Dict, Any, List, Optional
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from packages.codegen import __version__
from packages.codegen.codegen import CodeGenerator
from packages.codegen.errors import CodeGenerationError, WorkspaceLoadError
from packages.core.registry import LanguageNotFoundError, LanguageRegistry
from packages.core.settings import SettingsError, load_options
from packages.sdk.schema import SchemaValidationError

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="BlockForge API",
    description="API for generating source code from Blockly workspaces",
    version=__version__
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Update in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

registry = LanguageRegistry()


# Models
class WorkspaceRequest(BaseModel):
    workspace: Optional[Dict[str, Any]] = None
    xml: Optional[str] = None


class GenerateRequest(WorkspaceRequest):
    language: str = "cpp"
    options: Optional[Dict[str, Any]] = None


class GenerateResponse(BaseModel):
    language: str
    code: str
    body: str
    imports: List[str]
    definitions: List[str]


def _document(request: WorkspaceRequest):
    if request.workspace is not None:
        return request.workspace, False
    if request.xml is not None:
        return request.xml, True
    raise HTTPException(status_code=422, detail="Provide either 'workspace' or 'xml'")


def _raise_http(e: Exception):
    if isinstance(e, LanguageNotFoundError):
        raise HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (SchemaValidationError, WorkspaceLoadError, SettingsError)):
        raise HTTPException(status_code=422, detail=f"{type(e).__name__}: {e}")
    raise HTTPException(status_code=400, detail={
        "error": type(e).__name__,
        "message": getattr(e, "message", str(e)),
        "block_id": getattr(e, "block_id", None),
        "block_type": getattr(e, "block_type", None),
        "slot": getattr(e, "slot", None),
    })


# Routes
@app.get("/")
async def read_root():
    """Root endpoint."""
    return {
        "name": "BlockForge API",
        "version": __version__,
        "languages": registry.available(),
    }


@app.get("/languages")
async def list_languages():
    """List the target languages."""
    return {"languages": registry.to_json()}


@app.post("/generate", response_model=GenerateResponse)
async def generate(request: GenerateRequest):
    """Generate a program for a workspace."""
    document, as_xml = _document(request)
    try:
        options = load_options(overrides=request.options or {})
        generator = CodeGenerator(registry=registry, options=options)
        language = registry.resolve(request.language)
        result = generator.generate(document, language, xml=as_xml)
    except (CodeGenerationError, WorkspaceLoadError, SchemaValidationError,
            SettingsError, LanguageNotFoundError) as e:
        logger.warning(f"Generation failed: {e}")
        _raise_http(e)
    payload = result.to_dict()
    return GenerateResponse(language=language, **payload)


@app.post("/validate")
async def validate(request: WorkspaceRequest):
    """Validate a workspace."""
    document, as_xml = _document(request)
    try:
        issues = CodeGenerator(registry=registry).validate(document, xml=as_xml)
    except (CodeGenerationError, WorkspaceLoadError, SchemaValidationError) as e:
        _raise_http(e)
    return {
        "valid": not any(issue["severity"] == "error" for issue in issues),
        "issues": issues,
    }


# Run with uvicorn
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
