"""
Vocabulary IRIs used by the query builders.
"""

RDF = "http://www.w3.org/1999/02/22-rdf-syntax-ns#"
RDFS = "http://www.w3.org/2000/01/rdf-schema#"
OESO = "http://www.opensilex.org/vocabulary/oeso#"

RDF_TYPE = RDF + "type"
RDFS_LABEL = RDFS + "label"
RDFS_SUBCLASS_OF = RDFS + "subClassOf"

OESO_INFRASTRUCTURE = OESO + "Infrastructure"
OESO_SCIENTIFIC_OBJECT = OESO + "ScientificObject"
OESO_VARIABLE = OESO + "Variable"
OESO_SENSING_DEVICE = OESO + "SensingDevice"
OESO_IS_PART_OF = OESO + "isPartOf"
