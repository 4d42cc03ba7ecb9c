# Expose key functions for easier package access
from .cards import Card, Region, SetTriple, indices_to_card
from .detection import detect_cards_from_image
from .drawing import draw_sets_on_image
from .pipeline import FrameProcessor, FrameResult
from .rectification import rectify_card
from .set_finder import analyze_set, find_all_sets, find_sets_brute_force, find_sets_optimized, is_set
