"""
Text recognition on cropped cover regions.
"""

from .recognizer import EasyOCRRecognizer, RecognitionOptions, TextRecognizer, fragments_from_easyocr

__all__ = ['EasyOCRRecognizer', 'RecognitionOptions', 'TextRecognizer', 'fragments_from_easyocr']
