from .explain import (
    SurrogateTree,
    accumulated_local_effects,
    feature_importance,
    fit_surrogate_tree,
    shap_summary,
    shap_values,
)

__all__ = [
    "SurrogateTree",
    "accumulated_local_effects",
    "feature_importance",
    "fit_surrogate_tree",
    "shap_summary",
    "shap_values",
]
